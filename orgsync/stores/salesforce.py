"""Salesforce implementation of the remote store contract."""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import requests
from simple_salesforce import Salesforce
from simple_salesforce.exceptions import (
    SalesforceError,
    SalesforceExpiredSession,
    SalesforceGeneralError,
    SalesforceMalformedRequest,
    SalesforceRefusedRequest,
)

from orgsync.common.config import SalesforceConfig
from orgsync.observability.logging_config import get_logger
from orgsync.replication.errors import ConfigurationError, TransientRemoteError
from orgsync.stores.base import Condition, Query, RemoteStore

logger = get_logger(__name__)

T = TypeVar("T")


class SalesforceStore(RemoteStore):
    """Remote store backed by one Salesforce org through simple-salesforce."""

    def __init__(self, config: SalesforceConfig, label: str = "salesforce") -> None:
        """
        Initialize Salesforce store.

        Args:
            config: Connection settings for the org
            label: Name used in log messages (e.g. "source", "destination")
        """
        self.config = config
        self.label = label
        self._sf: Optional[Salesforce] = None

    def __repr__(self) -> str:
        return f"SalesforceStore(label={self.label!r}, instance_url={self.config.instance_url!r})"

    @property
    def sf(self) -> Salesforce:
        """Connected client, created on first use."""
        if self._sf is None:
            self._sf = self._connect()
        return self._sf

    async def connect(self) -> None:
        """Log in from a worker thread so the event loop is not blocked."""
        if self._sf is None:
            self._sf = await asyncio.to_thread(self._connect)

    def _connect(self) -> Salesforce:
        cfg = self.config
        if cfg.session_id and cfg.instance_url:
            logger.info(f"Connecting to {self.label} org at {cfg.instance_url} with session id")
            return Salesforce(
                instance_url=cfg.instance_url,
                session_id=cfg.session_id,
                version=cfg.api_version,
            )
        if cfg.username and cfg.password:
            logger.info(f"Connecting to {self.label} org as {cfg.username}")
            return Salesforce(
                username=cfg.username,
                password=cfg.password,
                security_token=cfg.security_token or "",
                domain=cfg.domain,
                version=cfg.api_version,
            )
        raise ConfigurationError(
            f"No credentials configured for the {self.label} org",
            details={"label": self.label},
        )

    @property
    def connection_key(self) -> str:
        # Session ids are prefixed with the 15 character org id
        session_id = self.sf.session_id or ""
        if "!" in session_id:
            return session_id.split("!")[0]
        return self.sf.sf_instance

    async def _call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking client call in a worker thread, translating transient failures."""
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise TransientRemoteError(f"{self.label} connection failed: {e}") from e
        except SalesforceExpiredSession as e:
            raise TransientRemoteError(f"{self.label} session expired") from e
        except SalesforceRefusedRequest as e:
            if "REQUEST_LIMIT_EXCEEDED" in str(e.content):
                raise TransientRemoteError(f"{self.label} request limit exceeded") from e
            raise
        except SalesforceGeneralError as e:
            if e.status >= 500:
                raise TransientRemoteError(f"{self.label} server error {e.status}") from e
            raise

    async def identity(self) -> Dict[str, Any]:
        me = await self._call(self.sf.restful, "chatter/users/me")
        return {
            "username": me.get("username"),
            "user_id": me.get("id"),
            "display_name": me.get("displayName"),
        }

    async def describe_global(self) -> Dict[str, Any]:
        return await self._call(self.sf.describe)

    async def describe(self, object_type: str) -> Dict[str, Any]:
        sobject = getattr(self.sf, object_type)
        return await self._call(sobject.describe)

    async def query(self, query: Query) -> Dict[str, Any]:
        soql = query.to_soql()
        logger.debug(f"[{self.label}] query: {soql}")
        res = await self._call(self.sf.query_all, soql)
        return {"records": [_strip_attributes(r) for r in res.get("records", [])]}

    async def count(self, object_type: str) -> int:
        res = await self._call(self.sf.query, f"SELECT COUNT() FROM {object_type}")
        return int(res.get("totalSize", 0))

    async def upsert_one(
        self, object_type: str, record: Dict[str, Any], external_id_field: str
    ) -> Dict[str, Any]:
        external_id = record[external_id_field]
        body = {k: v for k, v in record.items() if k != external_id_field}
        sobject = getattr(self.sf, object_type)

        try:
            response = await self._call(
                sobject.upsert, f"{external_id_field}/{external_id}", body, raw_response=True
            )
        except SalesforceMalformedRequest as e:
            return {"success": False, "id": None, "errors": _error_list(e)}

        if response.status_code in (200, 201) and response.content:
            payload = response.json()
            return {
                "success": bool(payload.get("success", True)),
                "id": payload.get("id"),
                "errors": payload.get("errors", []),
            }

        # 204 No Content: updated in place, look the id up by external id
        lookup = await self.query(
            Query(
                object_type=object_type,
                fields=("Id",),
                where=(Condition(external_id_field, "=", external_id),),
            )
        )
        records = lookup["records"]
        if len(records) != 1:
            return {
                "success": False,
                "id": None,
                "errors": [f"expected one record for {external_id}, found {len(records)}"],
            }
        return {"success": True, "id": records[0]["Id"], "errors": []}

    async def upsert_bulk(
        self, object_type: str, records: Sequence[Dict[str, Any]], external_id_field: str
    ) -> List[Dict[str, Any]]:
        bulk_type = getattr(self.sf.bulk, object_type)
        results = await self._call(
            bulk_type.upsert, list(records), external_id_field, batch_size=len(records) or 1
        )
        return [
            {
                "success": bool(r.get("success")),
                "id": r.get("id"),
                "errors": r.get("errors", []),
            }
            for r in results
        ]


def _strip_attributes(record: Dict[str, Any]) -> Dict[str, Any]:
    """Remove REST metadata from a record, including nested relationship records."""
    cleaned: Dict[str, Any] = {}
    for key, value in record.items():
        if key == "attributes":
            continue
        if isinstance(value, dict):
            value = _strip_attributes(value)
        cleaned[key] = value
    return cleaned


def _error_list(error: SalesforceError) -> List[Any]:
    content = error.content
    if isinstance(content, list):
        return content
    return [content]
