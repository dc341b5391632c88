"""Decide whether a registry response is a usable match."""

from pydantic import BaseModel

from consolidator.lookup.models import BiblioRecord, LookupResponse, LookupStatus


class Accepted(BaseModel):
    """The response holds at least one valid candidate record."""

    records: list[BiblioRecord]


class Rejected(BaseModel):
    """The response cannot be used; the resolver moves on."""

    reason: str


def classify(response: LookupResponse) -> Accepted | Rejected:
    """Accept only an OK response whose first record carries no error marker.

    All candidate records are returned in registry order.
    """
    if response.status is not LookupStatus.OK:
        detail = response.error_message or "no detail"
        return Rejected(reason=f"{response.status.value}: {detail}")

    if response.result_count == 0 or not response.results:
        return Rejected(reason="no results")

    first = response.results[0]
    if first.error:
        return Rejected(reason=f"registry error: {first.error_message or 'unspecified'}")

    return Accepted(records=list(response.results))
