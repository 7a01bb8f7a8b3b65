"""Daily FX rates from the TCMB ``today.xml`` table.

Rates are quoted as "1 unit of <currency> = N units of the base currency" and
come from the ``ForexSelling`` column. They are only valid for the publication
day, so callers keep them for one request at most.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from xml.etree import ElementTree

import requests

from credit_engine.core.config import settings
from credit_engine.core.errors import RateUnavailableError

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class FxRate:
    currency: str
    units_per_base: Decimal
    as_of: date | None
    source: str


def parse_rate_number(raw: str) -> Decimal:
    """Parse ``"48,4575"``, ``"48.4575"``, ``"1.234,56"`` and ``"1,234.56"`` alike."""
    value = (raw or "").strip().replace(" ", "").replace("\u00a0", "")
    if not value:
        raise RateUnavailableError("Empty rate value")

    has_comma = "," in value
    has_dot = "." in value
    if has_comma and has_dot:
        # Whichever separator comes last is the decimal mark.
        if value.rfind(",") > value.rfind("."):
            value = value.replace(".", "").replace(",", ".")
        else:
            value = value.replace(",", "")
    elif has_comma:
        value = value.replace(",", "") if value.count(",") > 1 else value.replace(",", ".")
    elif has_dot and value.count(".") > 1:
        value = value.replace(".", "")

    try:
        number = Decimal(value)
    except InvalidOperation as exc:
        raise RateUnavailableError(f"Unparseable rate value: {raw!r}") from exc

    if not number.is_finite() or number <= 0:
        raise RateUnavailableError(f"Rate must be a positive number, got {raw!r}")
    return number


def _parse_publication_date(root: ElementTree.Element) -> date | None:
    us_or_iso = (root.get("Date") or "").strip()
    for fmt in ("%m/%d/%Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(us_or_iso, fmt).date()
        except ValueError:
            continue

    local = (root.get("Tarih") or "").strip()
    try:
        return datetime.strptime(local, "%d.%m.%Y").date()
    except ValueError:
        return None


def parse_rate_table(xml_payload: str | bytes, currency: str) -> tuple[Decimal, date | None]:
    try:
        root = ElementTree.fromstring(xml_payload)
    except ElementTree.ParseError as exc:
        raise RateUnavailableError("FX table is not valid XML") from exc

    code = currency.upper()
    block = None
    for candidate in root.iter("Currency"):
        if (candidate.get("CurrencyCode") or candidate.get("Kod") or "").upper() == code:
            block = candidate
            break
    if block is None:
        raise RateUnavailableError(f"Currency {code} is not listed in the FX table", currency=code)

    selling = block.findtext("ForexSelling")
    if not selling or not selling.strip():
        raise RateUnavailableError(f"No selling rate for {code}", currency=code)
    rate = parse_rate_number(selling)

    unit_text = (block.findtext("Unit") or "1").strip()
    try:
        unit = Decimal(unit_text)
    except InvalidOperation:
        unit = Decimal("1")
    if unit.is_finite() and unit > 0:
        rate = rate / unit

    return rate, _parse_publication_date(root)


class TcmbRateSource:
    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        http: requests.Session | None = None,
    ) -> None:
        self.url = url or settings.fx_source_url
        self.timeout = timeout if timeout is not None else settings.fx_timeout_seconds
        self._http = http
        self._owns_http = http is None

    @property
    def http(self) -> requests.Session:
        if self._http is None:
            self._http = requests.Session()
        return self._http

    def close(self) -> None:
        if self._owns_http and self._http is not None:
            self._http.close()
            self._http = None

    def rate(self, currency: str) -> FxRate:
        code = (currency or settings.base_currency).strip().upper()
        if code == settings.base_currency.upper():
            return FxRate(
                currency=code,
                units_per_base=Decimal("1"),
                as_of=datetime.now(timezone.utc).date(),
                source="static",
            )

        try:
            response = self.http.get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise RateUnavailableError(f"FX table fetch failed: {exc}", currency=code) from exc

        rate, as_of = parse_rate_table(response.content, code)
        if as_of is None:
            logger.warning("FX table from %s carries no publication date", self.url)
        return FxRate(currency=code, units_per_base=rate, as_of=as_of, source="tcmb:ForexSelling")

    async def fetch_rate(self, currency: str) -> FxRate:
        return await asyncio.to_thread(self.rate, currency)


class RequestRateCache:
    """Memoizes rates for the lifetime of one request; never shared across requests."""

    def __init__(self, source: TcmbRateSource) -> None:
        self.source = source
        self._rates: dict[str, FxRate] = {}

    async def fetch_rate(self, currency: str) -> FxRate:
        code = (currency or settings.base_currency).strip().upper()
        cached = self._rates.get(code)
        if cached is None:
            cached = await self.source.fetch_rate(code)
            self._rates[code] = cached
        return cached


def get_rate_source() -> Iterator[RequestRateCache]:
    source = TcmbRateSource()
    try:
        yield RequestRateCache(source)
    finally:
        source.close()
