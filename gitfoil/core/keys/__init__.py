"""
GitFoil Key Management
======================

- keypair.py: hybrid keypair and its serialized form
- keyring_store.py: key files under <git-dir>/git_foil
- password_provider.py: pluggable password sources
- lifecycle.py: initialize / unlock / migrate

Only the keypair is re-exported here: password_wrap imports keypair, and
keyring_store imports password_wrap.
"""

from gitfoil.core.keys.keypair import Keypair, generate_keypair

__all__ = ["Keypair", "generate_keypair"]
