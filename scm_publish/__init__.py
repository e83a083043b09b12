"""Publish a build's content folder into a git or svn repository.

Boundary rules:
- `publisher` owns sequencing and is the only module that wraps errors into
  `PublishError`.
- Backends in `scm` talk to git/svn and know nothing about content copying.
- `folder_copy` and `credentials` are independent of any SCM.
"""

from .credentials import CredentialStore, get_credential_store
from .errors import PublishError
from .folder_copy import copy_folder
from .publisher import PublishState, SCMPublisher, publish
from .request import PublishRequest, SCMType

__all__ = [
    "CredentialStore",
    "PublishError",
    "PublishRequest",
    "PublishState",
    "SCMPublisher",
    "SCMType",
    "copy_folder",
    "get_credential_store",
    "publish",
]
