"""Offset pagination over list operations.

The paginator drives the dispatcher with ``sysparm_offset``/``sysparm_limit``
and yields records lazily, one round at a time, in server order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

import pandas as pd
from tqdm import tqdm

from opmap_client.api.dispatcher import OperationDispatcher, OptionsLike, coerce_options, get_default_dispatcher
from opmap_client.core.constants import DEFAULT_BATCH_SIZE, LIMIT_PARAM, OFFSET_PARAM

TQDM_BAR_FORMAT = "{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}]"


def extract_records(response: Any) -> list[Any] | None:
    """Return the record list of a list response, or None if there is none.

    A mapping with a ``result`` list and a bare list both count.
    """
    if isinstance(response, Mapping):
        result = response.get("result")
        return result if isinstance(result, list) else None
    if isinstance(response, list):
        return response
    return None


@dataclass
class PagingState:
    """Progress of one ``paginate`` call."""

    offset: int = 0
    total_fetched: int = 0
    has_more: bool = True
    rounds: int = 0


class Paginator:
    """Lazily pages through a list operation.

    Args:
        dispatcher: Dispatcher used for every round (default: process-wide)
        logger: Logger instance
    """

    def __init__(self, dispatcher: OperationDispatcher | None = None, logger: logging.Logger | None = None):
        self.dispatcher = dispatcher or get_default_dispatcher()
        self.logger = logger or logging.getLogger(__name__)

    def paginate(
        self,
        operation_key: str,
        params: Mapping[str, Any] | None = None,
        options: OptionsLike = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_records: int | None = 0,
    ) -> Iterator[Any]:
        """Yield records from successive pages of ``operation_key``.

        Each round overlays ``sysparm_offset``/``sysparm_limit`` onto a copy
        of ``options.query``; the caller's options are left untouched.

        Args:
            operation_key: List operation to call
            params: Placeholder values, identical for every round
            options: Call options shared by every round
            batch_size: Records requested per round
            max_records: Cap on records yielded; 0 or None means unbounded

        Raises:
            ValueError: If batch_size is not positive or max_records is negative
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if max_records is not None and max_records < 0:
            raise ValueError(f"max_records must not be negative, got {max_records}")
        base_options = coerce_options(options)
        state = PagingState()

        while state.has_more:
            if max_records and state.total_fetched >= max_records:
                break
            requested = batch_size
            if max_records:
                requested = min(batch_size, max_records - state.total_fetched)

            round_options = base_options.with_query(**{OFFSET_PARAM: state.offset, LIMIT_PARAM: requested})
            response = self.dispatcher.invoke(operation_key, params, round_options)
            state.rounds += 1

            records = extract_records(response)
            if not records:
                self.logger.debug(f"{operation_key}: round {state.rounds} returned no records, stopping")
                break
            if max_records and len(records) > requested:
                self.logger.debug(
                    f"{operation_key}: server returned {len(records)} record(s) for a limit of {requested}, "
                    f"truncating to the cap"
                )
                records = records[:requested]

            yield from records
            state.offset += len(records)
            state.total_fetched += len(records)
            if len(records) < requested:
                state.has_more = False

        self.logger.debug(f"{operation_key}: fetched {state.total_fetched} record(s) in {state.rounds} round(s)")


def paginate(
    operation_key: str,
    params: Mapping[str, Any] | None = None,
    options: OptionsLike = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    max_records: int | None = 0,
) -> Iterator[Any]:
    """Page through ``operation_key`` with the process-wide dispatcher."""
    return Paginator().paginate(operation_key, params, options, batch_size=batch_size, max_records=max_records)


def fetch_all(
    operation_key: str,
    params: Mapping[str, Any] | None = None,
    options: OptionsLike = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    max_records: int | None = 0,
    dispatcher: OperationDispatcher | None = None,
    quiet: bool = False,
) -> list[Any]:
    """Collect every page into a list, showing a tqdm progress bar unless ``quiet``."""
    paginator = Paginator(dispatcher)
    records: list[Any] = []
    with tqdm(
        total=max_records or None,
        desc=f"Fetching {operation_key}",
        unit="rec",
        bar_format=TQDM_BAR_FORMAT if max_records else None,
        leave=False,
        disable=quiet,
    ) as pbar:
        for record in paginator.paginate(
            operation_key, params, options, batch_size=batch_size, max_records=max_records
        ):
            records.append(record)
            pbar.update(1)
    return records


def records_to_dataframe(records: list[Any]) -> pd.DataFrame:
    """Flatten records into a DataFrame; nested objects become dotted columns."""
    if not records:
        return pd.DataFrame()
    return pd.json_normalize(records)
