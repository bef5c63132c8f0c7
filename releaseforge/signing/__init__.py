"""Code signers for packaged artifacts."""

from releaseforge.signing.base import Signer
from releaseforge.signing.codesign import CodesignSigner
from releaseforge.signing.signtool import SigntoolSigner

__all__ = ["Signer", "CodesignSigner", "SigntoolSigner"]
