"""
host.py - In-process execution host for token programs

The Host stands in for the consensus-ordered chain a token program normally
runs on. It is the only place that holds native currency and time.

Key responsibilities:
    - Logical clock that only moves forward (advance_time, advance)
    - Native currency balances and value transfers with receiver hooks
    - Registry of deployed contract accounts (deploy, code_at)
    - Atomic calls: every write made inside atomic() is rolled back on error
    - Serialization: one call runs at a time; same-thread re-entry is allowed
    - Always logs: every entry-point call lands in call_log, applied or not
"""

from __future__ import annotations
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Dict, Iterator, List, Optional
import threading

from .core import (
    CallRecord, CallResult,
    Stateful, ValueReceiver,
    InsufficientFundsError, InvalidArgumentError,
    NULL_ADDRESS, to_unix, require_amount,
)


# UNIX time 0 marks "sale never started", so the clock starts well after it.
DEFAULT_GENESIS_TIME = datetime(2018, 1, 1)


class Host:
    """
    Atomic, serialized execution environment for token programs.

    Design Principles:
        - All-or-nothing: a failing call leaves native balances and every
          Stateful contract exactly as they were before the call.
        - Re-entrancy is real: value sent to a contract account runs its
          on_value_received hook before the sending call returns.

    Thread Safety:
        Calls are serialized with a re-entrant lock. Re-entrant calls from
        hooks and callbacks on the same thread proceed; other threads wait.

    Example:
        host = Host(verbose=False)
        host.fund("alice", 10 ** 18)
        token = SaleToken(host, owner="deployer")
        token.initialize("deployer")
    """

    def __init__(
        self,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        name: str = "host",
    ):
        """
        Create a host.

        Args:
            initial_time: Starting time of the clock (default: 2018-01-01)
            verbose: Print a line for every applied or rejected call
            name: Identifier used in call ids
        """
        self.name = name
        self.native_balances: Dict[str, int] = defaultdict(int)
        self.contracts: Dict[str, Any] = {}
        self.call_log: List[CallRecord] = []
        self.verbose = verbose
        self._current_time: datetime = initial_time or DEFAULT_GENESIS_TIME
        self._next_sequence: int = 0
        self._depth: int = 0
        self._lock = threading.RLock()

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the host."""
        return self._current_time

    @property
    def now(self) -> int:
        """Current time in whole UNIX seconds."""
        return to_unix(self._current_time)

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the logical clock to a new time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    def advance(self, delta: timedelta) -> datetime:
        """Move the clock forward by delta and return the new time."""
        self.advance_time(self._current_time + delta)
        return self._current_time

    # ========================================================================
    # ACCOUNTS
    # ========================================================================

    def deploy(self, address: str, contract: Any) -> str:
        """
        Register a contract object as the code living at address.

        Raises:
            ValueError: If address is null or already occupied
        """
        if not address or address == NULL_ADDRESS:
            raise ValueError("Cannot deploy to the null address")
        if address in self.contracts:
            raise ValueError(f"Address {address} already has code deployed")
        self.contracts[address] = contract
        return address

    def code_at(self, address: str) -> Optional[Any]:
        """Return the contract deployed at address, or None for plain accounts."""
        return self.contracts.get(address)

    def native_balance(self, address: str) -> int:
        return self.native_balances.get(address, 0)

    def total_native_supply(self) -> int:
        return sum(self.native_balances.values())

    def fund(self, address: str, amount: int) -> None:
        """
        Issue native currency to an account.

        This is the only way native currency enters the host; simulations and
        tests use it to give buyers something to spend.
        """
        require_amount(amount)
        self.native_balances[address] += amount

    # ========================================================================
    # VALUE TRANSFERS
    # ========================================================================

    def _move_native(self, sender: str, to: str, amount: int) -> None:
        require_amount(amount)
        if not to or to == NULL_ADDRESS:
            raise InvalidArgumentError("Cannot send value to the null address")
        available = self.native_balances.get(sender, 0)
        if available < amount:
            raise InsufficientFundsError(
                f"{sender} has {available} wei, cannot send {amount}"
            )
        self.native_balances[sender] = available - amount
        self.native_balances[to] += amount

    def attach_value(self, sender: str, to: str, amount: int) -> None:
        """
        Move the value attached to a payable call into the callee.

        Unlike send_value, no receiver hook runs: the callee is already
        executing the call the value was attached to.
        """
        if amount:
            self._move_native(sender, to, amount)

    def send_value(self, sender: str, to: str, amount: int) -> None:
        """
        Transfer native currency and notify contract receivers.

        If the destination is a ValueReceiver, its hook runs before this
        method returns and may re-enter any program. The transfer and
        everything the hook does form one atomic unit.
        """
        with self.atomic():
            self._move_native(sender, to, amount)
            receiver = self.contracts.get(to)
            if isinstance(receiver, ValueReceiver):
                receiver.on_value_received(sender, amount)

    # ========================================================================
    # ATOMICITY
    # ========================================================================

    def _snapshot(self) -> Dict[str, Any]:
        return {
            "native": dict(self.native_balances),
            "contracts": {
                address: contract.snapshot()
                for address, contract in self.contracts.items()
                if isinstance(contract, Stateful)
            },
        }

    def _restore(self, snap: Dict[str, Any]) -> None:
        self.native_balances = defaultdict(int, snap["native"])
        for address, contract_snap in snap["contracts"].items():
            self.contracts[address].restore(contract_snap)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """
        Run a block as a single all-or-nothing state transition.

        Nested blocks take their own snapshot, so a failure inside a nested
        block that the outer code handles only undoes the nested writes.
        Calls logged as APPLIED inside a block that rolls back are marked
        REVERTED.
        """
        with self._lock:
            snap = self._snapshot()
            logged = len(self.call_log)
            self._depth += 1
            try:
                yield
            except BaseException:
                self._restore(snap)
                self._revert_records(logged)
                raise
            finally:
                self._depth -= 1

    @contextmanager
    def call(self, caller: str, target: str, entry_point: str, value: int = 0) -> Iterator[None]:
        """
        Run an entry point atomically and record it in the call log.

        Errors are recorded as REJECTED and re-raised unchanged.
        """
        with self._lock:
            depth = self._depth
            try:
                with self.atomic():
                    yield
            except Exception as exc:
                self._record(caller, target, entry_point, value,
                             CallResult.REJECTED, str(exc) or type(exc).__name__, depth)
                raise
            self._record(caller, target, entry_point, value, CallResult.APPLIED, "", depth)

    # ========================================================================
    # AUDIT TRAIL
    # ========================================================================

    def _generate_call_id(self, sequence: int) -> str:
        """Format: call:{host_name}:{sequence:012d}:{unix_seconds}"""
        return f"call:{self.name}:{sequence:012d}:{self.now}"

    def _record(
        self,
        caller: str,
        target: str,
        entry_point: str,
        value: int,
        result: CallResult,
        reason: str,
        depth: int,
    ) -> CallRecord:
        sequence = self._next_sequence
        self._next_sequence += 1
        record = CallRecord(
            sequence_number=sequence,
            call_id=self._generate_call_id(sequence),
            timestamp=self._current_time,
            caller=caller,
            target=target,
            entry_point=entry_point,
            value=value,
            result=result,
            reason=reason,
            depth=depth,
        )
        self.call_log.append(record)
        if self.verbose:
            indent = "  " * depth
            if result is CallResult.APPLIED:
                print(f"{indent}✓ {entry_point} by {caller}")
            else:
                print(f"{indent}✗ REJECTED {entry_point} by {caller}: {reason}")
        return record

    def _revert_records(self, start: int) -> None:
        for index in range(start, len(self.call_log)):
            record = self.call_log[index]
            if record.result is not CallResult.APPLIED:
                continue
            self.call_log[index] = replace(record, result=CallResult.REVERTED)
            if self.verbose:
                indent = "  " * record.depth
                print(f"{indent}↺ REVERTED {record.entry_point} by {record.caller}")

    def rejected_calls(self) -> List[CallRecord]:
        """Return every rejected call in log order."""
        return [r for r in self.call_log if r.result is CallResult.REJECTED]
