# rentline/clients/optimistic.py
from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Generic, Optional, TypeVar

from ..domain.errors import RentlineError

log = logging.getLogger(__name__)

T = TypeVar("T")

PENDING = "pending"
COMMITTED = "committed"
REVERTED = "reverted"


class OptimisticUpdate(Generic[T]):
    """
    A local change applied ahead of its remote write, with a compensating action.

        apply()        -> snapshot of the state it replaced
        remote()       -> authoritative result (raises RentlineError on failure)
        commit(result) -> fold the authoritative result into local state
        revert(snap)   -> put the snapshot back
        refetch()      -> optional reload of authoritative state after a revert

    run() returns the remote result, or re-raises its error once local state
    has been put back.
    """

    def __init__(
        self,
        *,
        apply: Callable[[], Any],
        remote: Callable[[], T],
        revert: Callable[[Any], None],
        commit: Optional[Callable[[T], None]] = None,
        refetch: Optional[Callable[[], None]] = None,
    ) -> None:
        self._apply = apply
        self._remote = remote
        self._revert = revert
        self._commit = commit
        self._refetch = refetch
        self.status = PENDING
        self.error: Optional[RentlineError] = None

    def run(self) -> T:
        if self.status != PENDING:
            raise RuntimeError(f"optimistic update already {self.status}")

        snapshot = self._apply()
        try:
            result = self._remote()
        except RentlineError as e:
            self.error = e
            self._revert(snapshot)
            self.status = REVERTED
            if self._refetch is not None:
                try:
                    self._refetch()
                except RentlineError:
                    # the reverted snapshot stays; the original failure is what the caller sees
                    log.warning("refetch after revert failed", exc_info=True)
            raise

        if self._commit is not None:
            self._commit(result)
        self.status = COMMITTED
        return result


def toggle_check_item(client: Any, agreement: dict[str, Any], item_index: int) -> dict[str, Any]:
    """
    Flip a check item locally, then ask the server to toggle it.

    `agreement` is the caller's local copy and is mutated in place: on success
    it takes the server's check_items (the server decides the final checked
    value); on failure it is restored and then refreshed from the server.
    """
    items = agreement.get("check_items") or []
    if not 0 <= int(item_index) < len(items):
        raise IndexError(f"item_index {item_index} out of range")

    def apply() -> list[dict[str, Any]]:
        before = copy.deepcopy(agreement["check_items"])
        it = agreement["check_items"][item_index]
        it["checked"] = not bool(it.get("checked"))
        return before

    def revert(before: list[dict[str, Any]]) -> None:
        agreement["check_items"] = before

    def commit(server: dict[str, Any]) -> None:
        agreement.update(server)

    def refetch() -> None:
        agreement.update(client.get_agreement(agreement["id"]))

    op: OptimisticUpdate[dict[str, Any]] = OptimisticUpdate(
        apply=apply,
        remote=lambda: client.agreement_task(agreement["id"], item_index, "complete"),
        revert=revert,
        commit=commit,
        refetch=refetch,
    )
    return op.run()
