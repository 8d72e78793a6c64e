"""Wallet signature recovery.

Wallets sign challenges with ``personal_sign`` (EIP-191), which is what
``signer.signMessage(challenge)`` produces in browser wallet providers.
We never verify against a public key held server-side: the signer's
address is recovered from the signature and compared to the claim.
"""

import logging

from eth_account import Account
from eth_account.messages import encode_defunct

from errors import SignatureMismatch

logger = logging.getLogger(__name__)

def recover_signer(message: str, signature: str) -> str:
    """Recover the lower-cased address that signed ``message``.

    Args:
        message: The exact text that was signed
        signature: 65-byte hex signature, with or without 0x prefix

    Returns:
        The recovered address, lower-cased

    Raises:
        SignatureMismatch: If the signature is malformed or unrecoverable
    """
    try:
        address = Account.recover_message(
            encode_defunct(text=message),
            signature=signature
        )
    except Exception as e:
        logger.debug(f"Signature recovery failed: {e}")
        raise SignatureMismatch("Signature could not be verified")
    return address.lower()

__all__ = ['recover_signer']
