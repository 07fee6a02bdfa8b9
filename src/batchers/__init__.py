"""
Blockchain batch calling utilities.

This package turns declarative multi-contract, multi-method, multi-block
read requests into a single JSON-RPC batch and reshapes the answers into
a per-address result tree.
"""

from .abi import AbiStorage, EtherscanAbiFetcher
from .base import (
    BatchCallOptions,
    BlockSample,
    BlockValue,
    CallBackend,
    CallDescriptor,
    CallResult,
    ContractGroup,
    MethodSpec,
    RequestBatch,
)
from .batch_call import BatchCall, batch_call
from .errors import (
    BatchError,
    BatchSubmissionError,
    ConfigurationError,
    ContractError,
    MissingCredentialsError,
    NetworkError,
    RemoteLookupError,
    ValidationError,
)
from .expander import RequestExpander, build_block_samples
from .reducer import ResultTreeBuilder, flatten_namespaces, group_by_namespace
from .submitter import BatchSubmitter
from .web3_backend import Web3BatchBackend

__all__ = [
    'AbiStorage',
    'EtherscanAbiFetcher',
    'BatchCall',
    'batch_call',
    'BatchCallOptions',
    'BlockSample',
    'BlockValue',
    'CallBackend',
    'CallDescriptor',
    'CallResult',
    'ContractGroup',
    'MethodSpec',
    'RequestBatch',
    'RequestExpander',
    'build_block_samples',
    'BatchSubmitter',
    'ResultTreeBuilder',
    'group_by_namespace',
    'flatten_namespaces',
    'Web3BatchBackend',
    'BatchError',
    'BatchSubmissionError',
    'ConfigurationError',
    'ContractError',
    'MissingCredentialsError',
    'NetworkError',
    'RemoteLookupError',
    'ValidationError',
]
