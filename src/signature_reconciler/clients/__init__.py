"""
External service clients for the signature reconciler.
"""

from .docusign_client import DocuSignClient
from .function_client import FunctionClient

__all__ = [
    'DocuSignClient',
    'FunctionClient',
]
