"""
Atomicizer

Runs a batch of calls as one unit. Meant to be delegate-called by a user's
proxy so that every call in the batch is sent from the proxy itself.
"""

from typing import Sequence

from ..chain.contract import Contract, external
from ..exceptions import CallFailed, ExecutionReverted
from ..logger import get_logger

logger = get_logger(__name__)


class Atomicizer(Contract):

    @external("atomicize(address[],uint256[],uint256[],bytes)", payable=True)
    def atomicize(
        self,
        addrs: Sequence[str],
        values: Sequence[int],
        calldata_lengths: Sequence[int],
        calldatas: bytes,
    ) -> None:
        """
        Execute calls in order; any failure fails the whole batch.

        Args:
            addrs: Call targets
            values: Value sent with each call
            calldata_lengths: Length of each call's slice of `calldatas`
            calldatas: All call data, concatenated
        """
        if not len(addrs) == len(values) == len(calldata_lengths):
            raise ExecutionReverted("Addresses, calldata lengths, and values must match in quantity")
        if sum(calldata_lengths) != len(calldatas):
            raise ExecutionReverted("Calldata lengths do not add up to calldata size")

        offset = 0
        for index, (target, value, length) in enumerate(zip(addrs, values, calldata_lengths)):
            data = calldatas[offset:offset + length]
            offset += length
            ok, _ = self.chain.try_call(lambda: self.call(target, data, value))
            if not ok:
                raise CallFailed(f"Atomicizer subcall {index} to {target} failed")
        logger.debug(f"Atomicized {len(addrs)} calls from {self.address}")
