"""
lockledger: staking pools and linear vesting over a fungible token.

- `lockledger.state`: immutable records (pools, positions, vests) and canonical hashing
- `lockledger.core`: pure integer-only kernels, invariants and the error taxonomy
- `lockledger.integration`: ledgers, token collaborator, clocks, events and config
"""

__version__ = "0.1.0"
