"""Transaction path selection and `sui client` argument construction.

The native gas coin has dedicated single-step subcommands (`split-coin`, `pay-sui`); every
other coin type goes through a programmable transaction block (`sui client ptb`). Merges
always use a PTB because `merge-coin` only folds one coin per transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from coin_units import is_native_coin_type

PATH_NATIVE = "native"
PATH_GENERIC = "generic"

OP_SPLIT = "split"
OP_MERGE = "merge"
OP_TRANSFER = "transfer"

DEFAULT_GAS_BUDGET = 50_000_000
DRY_RUN_FLAG = "--dry-run"

SPLIT_RESULT_NAME = "new_coins"
TRANSFER_RESULT_NAME = "split_coin"


def select_path(coin_type: str, operation: str) -> str:
    if operation == OP_MERGE:
        return PATH_GENERIC
    if operation not in (OP_SPLIT, OP_TRANSFER):
        raise ValueError(f"unknown coin operation: {operation}")
    return PATH_NATIVE if is_native_coin_type(coin_type) else PATH_GENERIC


@dataclass(frozen=True)
class ObjectRef:
    object_id: str

    def render(self) -> str:
        return f"@{self.object_id}"


@dataclass(frozen=True)
class ResultRef:
    name: str
    index: int | None = None

    def render(self) -> str:
        return self.name if self.index is None else f"{self.name}.{self.index}"


Argument = Union[ObjectRef, ResultRef]


@dataclass(frozen=True)
class SplitCoins:
    coin: ObjectRef
    amounts: tuple[int, ...]


@dataclass(frozen=True)
class MergeCoins:
    primary: ObjectRef
    sources: tuple[ObjectRef, ...]


@dataclass(frozen=True)
class Assign:
    name: str


@dataclass(frozen=True)
class TransferObjects:
    objects: tuple[Argument, ...]
    recipient: str


Step = Union[SplitCoins, MergeCoins, Assign, TransferObjects]


def _render_list(items: list[str]) -> str:
    return f"[{', '.join(items)}]"


@dataclass
class PtbBuilder:
    """Ordered PTB steps; owns the arity bookkeeping behind `name.N` references."""

    steps: list[Step] = field(default_factory=list)
    _result_arity: dict[str, int] = field(default_factory=dict)
    _pending_arity: int | None = None

    def split_coins(self, coin_id: str, amounts: list[int]) -> PtbBuilder:
        if not amounts:
            raise ValueError("split-coins needs at least one amount")
        self.steps.append(SplitCoins(ObjectRef(coin_id), tuple(int(a) for a in amounts)))
        self._pending_arity = len(amounts)
        return self

    def merge_coins(self, primary_id: str, source_ids: list[str]) -> PtbBuilder:
        if not source_ids:
            raise ValueError("merge-coins needs at least one coin to merge")
        self.steps.append(MergeCoins(ObjectRef(primary_id), tuple(ObjectRef(s) for s in source_ids)))
        self._pending_arity = None
        return self

    def assign(self, name: str) -> list[ResultRef]:
        """Name the previous command's result and return one indexed ref per output."""
        if self._pending_arity is None:
            raise ValueError("assign must follow a command that produces results")
        if name in self._result_arity:
            raise ValueError(f"result name already assigned: {name}")
        self.steps.append(Assign(name))
        self._result_arity[name] = self._pending_arity
        self._pending_arity = None
        return [ResultRef(name, i) for i in range(self._result_arity[name])]

    def transfer_objects(self, objects: list[Argument], recipient: str) -> PtbBuilder:
        if not objects:
            raise ValueError("transfer-objects needs at least one object")
        for obj in objects:
            if not isinstance(obj, ResultRef):
                continue
            arity = self._result_arity.get(obj.name)
            if arity is None:
                raise ValueError(f"unknown result name: {obj.name}")
            if obj.index is not None and not 0 <= obj.index < arity:
                raise ValueError(f"{obj.render()} is out of range for {arity} results")
        self.steps.append(TransferObjects(tuple(objects), recipient))
        self._pending_arity = None
        return self

    def render(self, *, gas_budget: int | str, dry_run: bool = False) -> list[str]:
        args = ["client", "ptb"]
        for step in self.steps:
            if isinstance(step, SplitCoins):
                args += ["--split-coins", step.coin.render(), _render_list([str(a) for a in step.amounts])]
            elif isinstance(step, MergeCoins):
                args += ["--merge-coins", step.primary.render(), _render_list([s.render() for s in step.sources])]
            elif isinstance(step, Assign):
                args += ["--assign", step.name]
            elif isinstance(step, TransferObjects):
                args += ["--transfer-objects", _render_list([o.render() for o in step.objects]), f"@{step.recipient}"]
        args += ["--gas-budget", str(gas_budget)]
        if dry_run:
            args.append(DRY_RUN_FLAG)
        return args


def _command(path: str, args: list[str], dry_run: bool) -> dict[str, Any]:
    # `sui client ptb --dry-run` cannot be combined with --json; its summary is plain text.
    return {
        "path": path,
        "args": args,
        "want_json": not (dry_run and path == PATH_GENERIC),
        "dry_run": dry_run,
    }


def build_split_command(
    *,
    coin_id: str,
    coin_type: str,
    amounts: list[int],
    sender: str | None,
    gas_budget: int | str = DEFAULT_GAS_BUDGET,
    dry_run: bool = False,
) -> dict[str, Any]:
    path = select_path(coin_type, OP_SPLIT)
    if path == PATH_NATIVE:
        args = [
            "client",
            "split-coin",
            "--coin-id",
            coin_id,
            "--amounts",
            *[str(a) for a in amounts],
            "--gas-budget",
            str(gas_budget),
        ]
        if dry_run:
            args.append(DRY_RUN_FLAG)
        return _command(path, args, dry_run)

    if not sender:
        raise ValueError("a PTB split needs the sender address to receive the new coins")
    ptb = PtbBuilder().split_coins(coin_id, amounts)
    new_coins = ptb.assign(SPLIT_RESULT_NAME)
    ptb.transfer_objects(new_coins, sender)
    return _command(path, ptb.render(gas_budget=gas_budget, dry_run=dry_run), dry_run)


def build_merge_command(
    *,
    primary_coin_id: str,
    coin_ids_to_merge: list[str],
    gas_budget: int | str = DEFAULT_GAS_BUDGET,
    dry_run: bool = False,
) -> dict[str, Any]:
    ptb = PtbBuilder().merge_coins(primary_coin_id, coin_ids_to_merge)
    return _command(PATH_GENERIC, ptb.render(gas_budget=gas_budget, dry_run=dry_run), dry_run)


def build_transfer_command(
    *,
    coin_id: str,
    coin_type: str,
    recipient: str,
    amount: int,
    gas_budget: int | str = DEFAULT_GAS_BUDGET,
    dry_run: bool = False,
) -> dict[str, Any]:
    path = select_path(coin_type, OP_TRANSFER)
    if path == PATH_NATIVE:
        args = [
            "client",
            "pay-sui",
            "--input-coins",
            coin_id,
            "--recipients",
            recipient,
            "--amounts",
            str(amount),
            "--gas-budget",
            str(gas_budget),
        ]
        if dry_run:
            args.append(DRY_RUN_FLAG)
        return _command(path, args, dry_run)

    ptb = PtbBuilder().split_coins(coin_id, [amount])
    ptb.assign(TRANSFER_RESULT_NAME)
    ptb.transfer_objects([ResultRef(TRANSFER_RESULT_NAME)], recipient)
    return _command(path, ptb.render(gas_budget=gas_budget, dry_run=dry_run), dry_run)
