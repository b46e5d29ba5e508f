# MIT License
# Copyright (c) 2025 Hashborn

import inspect
from typing import Any, Callable, FrozenSet
from pydantic import BaseModel

from protocol.crypto.hash import sha256, canonical_json
from protocol.types.common import ValidationError
from .context import ExecutionContext


class Contract:
    """
    Base for contracts hosted by the chain.

    Subclasses keep their whole state in one pydantic model (`state`) so the
    journal can snapshot and restore it, and list the methods callers may
    invoke in ENTRYPOINTS. Every entrypoint takes the caller address first.
    """

    KIND: str = ""
    ENTRYPOINTS: FrozenSet[str] = frozenset()

    def __init__(self, ctx: ExecutionContext, address: str):
        self.ctx = ctx
        self.address = address
        ctx.journal.register(self)

    @property
    def state(self) -> BaseModel:
        raise NotImplementedError

    def _load(self, state: BaseModel) -> None:
        raise NotImplementedError

    def snapshot(self) -> BaseModel:
        return self.state.model_copy(deep=True)

    def restore(self, snapshot: BaseModel) -> None:
        self._load(snapshot)

    def state_hash(self) -> bytes:
        return sha256(canonical_json({
            "address": self.address,
            "kind": self.KIND,
            "state": self.state.model_dump(mode="json"),
        }))

    def _emit(self, name: str, **args: Any) -> None:
        self.ctx.emit(self.address, name, **args)

    def entrypoint(self, method: str, caller: str, args: dict) -> Callable[[], Any]:
        """Resolves a whitelisted method and binds its arguments. Raises ValidationError on mismatch."""
        if method not in self.ENTRYPOINTS:
            raise ValidationError(f"Unknown method '{method}' for {self.KIND} contract {self.address}")

        fn = getattr(self, method)
        try:
            bound = inspect.signature(fn).bind(caller, **args)
        except TypeError as e:
            raise ValidationError(f"Invalid arguments for {method}: {e}")
        return lambda: fn(*bound.args, **bound.kwargs)
