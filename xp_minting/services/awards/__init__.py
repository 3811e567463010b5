"""
Daily award pipeline: selection, identifier derivation, ledger awarding and logging.
"""
