"""
On-chain event indexing for funds.
"""
