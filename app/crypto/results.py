"""Tagged results for perimeter calls made at request boundaries."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from app.crypto.errors import FailureKind, PerimeterError

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Verified(Generic[T]):
    """Successful outcome.

    Attributes
    ----------
    value : T
        Value returned by the wrapped call.
    """

    value: T


@dataclass(frozen=True, slots=True)
class Rejected:
    """Failed outcome.

    Attributes
    ----------
    kind : FailureKind
        Failure tag.
    detail : str
        Server-side detail for logs.
    """

    kind: FailureKind
    detail: str


def attempt(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> Verified[T] | Rejected:
    """Run a perimeter call and return a tagged outcome.

    Parameters
    ----------
    func : Callable[..., T]
        Codec or cipher method.
    *args : Any
        Positional arguments for ``func``.
    **kwargs : Any
        Keyword arguments for ``func``.

    Returns
    -------
    Verified[T] | Rejected
        ``Verified`` with the return value, or ``Rejected`` carrying the
        failure kind. Exceptions outside ``PerimeterError`` propagate.
    """
    try:
        return Verified(func(*args, **kwargs))
    except PerimeterError as exc:
        return Rejected(kind=exc.kind, detail=exc.detail)
