"""
CRM client (Zoho CRM v6 REST API).

``CrmClient`` is the production ``RemoteStore``: the write-through
repository calls it before touching the local cache. Calls are synchronous
and are not retried on failure, except for one token refresh when the CRM
rejects the access token.
"""

from typing import Any, Callable, Optional

import structlog

from booking_sync.config import CRM_API_DOMAIN, CRM_PAGE_SIZE
from booking_sync.errors import RecordNotFound, UpstreamError
from booking_sync.network.auth import CRM, get_crm_token
from booking_sync.network.client import parse_json, raise_for_upstream_status, send_request
from booking_sync.normalizers.crm import booking_to_record, room_to_record

logger = structlog.get_logger(__name__)

BOOKINGS_MODULE = "Bookings"
ROOMS_MODULE = "Rooms"
CONTACTS_MODULE = "Contacts"
VOUCHERS_MODULE = "Voucher_Codes"

# Per-record error codes the CRM uses for an id it does not know
MISSING_RECORD_CODES = {"INVALID_DATA", "RECORD_NOT_FOUND"}


def escape_coql(value: str) -> str:
    """Escape a literal for a single-quoted COQL string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class CrmClient:
    """
    Thin typed wrapper over the CRM modules this engine uses.

    Args:
        api_domain: CRM API base URL
        token_provider: Returns a bearer token; called again with the rejected
            token after a 401
    """

    def __init__(
        self,
        api_domain: str = CRM_API_DOMAIN,
        token_provider: Callable[[Optional[str]], str] = get_crm_token,
    ) -> None:
        self.base_url = f"{api_domain}/crm/v6"
        self.token_provider = token_provider

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        body: Any = None,
    ) -> Any:
        endpoint = path.strip("/").split("/")[0]
        token = self.token_provider(None)

        for attempt in range(2):
            res = send_request(
                CRM,
                method,
                f"{self.base_url}{path}",
                endpoint=endpoint,
                headers={"Authorization": f"Zoho-oauthtoken {token}"},
                params=params,
                json=body,
            )
            if res.status_code == 401 and attempt == 0:
                logger.warning("crm_token_rejected", endpoint=endpoint)
                token = self.token_provider(token)
                continue
            break

        if res.status_code == 404:
            raise RecordNotFound(
                f"CRM record not found at {path}", system=CRM, upstream_status=404
            )
        raise_for_upstream_status(CRM, endpoint, res)
        return parse_json(CRM, res)

    @staticmethod
    def _first_result(response: Any, module: str, record_id: Optional[str] = None) -> dict:
        """Per-record outcome of a write; the CRM reports these inside a 200/201 body."""
        entries = (response or {}).get("data") or []
        if not entries:
            raise UpstreamError(f"Empty response writing {module}", system=CRM)
        entry = entries[0]
        if entry.get("status") == "error":
            if record_id is not None and entry.get("code") in MISSING_RECORD_CODES:
                raise RecordNotFound(f"{module} record {record_id} not found", system=CRM)
            raise UpstreamError(
                f"CRM rejected {module} write: {entry.get('code')} {entry.get('message')}",
                system=CRM,
            )
        return entry

    # -------------------------------------------------------------------------
    # Generic module operations
    # -------------------------------------------------------------------------

    def create_record(self, module: str, record: dict[str, Any]) -> str:
        """
        Create one record.

        Returns:
            str: The CRM-assigned record id
        """
        response = self._request("POST", f"/{module}", body={"data": [record]})
        entry = self._first_result(response, module)
        record_id = (entry.get("details") or {}).get("id")
        if not record_id:
            raise UpstreamError(f"Failed to create record in {module}", system=CRM)
        logger.info("crm_record_created", module=module, record_id=record_id)
        return str(record_id)

    def update_record(self, module: str, record_id: str, record: dict[str, Any]) -> None:
        response = self._request("PUT", f"/{module}/{record_id}", body={"data": [record]})
        self._first_result(response, module, record_id)
        logger.info("crm_record_updated", module=module, record_id=record_id)

    def delete_record(self, module: str, record_id: str) -> None:
        """
        Delete one record.

        Raises:
            RecordNotFound: The CRM has no such record (already deleted)
        """
        response = self._request("DELETE", f"/{module}/{record_id}")
        if response:
            self._first_result(response, module, record_id)
        logger.info("crm_record_deleted", module=module, record_id=record_id)

    def get_records(self, module: str, fields: Optional[list[str]] = None) -> list[dict[str, Any]]:
        """
        Fetch every record of a module, following ``info.more_records``.

        Returns:
            list[dict[str, Any]]: Flattened records across all pages
        """
        results: list[dict[str, Any]] = []
        page = 1
        while True:
            params: dict[str, Any] = {"page": page, "per_page": CRM_PAGE_SIZE}
            if fields:
                params["fields"] = ",".join(fields)
            # A module with no records answers 204 with no body
            response = self._request("GET", f"/{module}", params=params) or {}
            results.extend(response.get("data") or [])
            if not (response.get("info") or {}).get("more_records"):
                break
            page += 1

        logger.info("crm_records_fetched", module=module, count=len(results), pages=page)
        return results

    def search(self, query: str) -> list[dict[str, Any]]:
        """Run a COQL select; no matches is an empty list."""
        response = self._request("POST", "/coql", body={"select_query": query}) or {}
        return response.get("data") or []

    def find_or_create_contact(self, guest_name: str, guest_email: str) -> str:
        """
        Resolve a guest to a CRM Contact id by email, creating it if needed.

        Returns:
            str: Contact record id
        """
        email = guest_email.strip().lower()
        matches = self.search(
            f"select id, Email from {CONTACTS_MODULE} where Email = '{escape_coql(email)}'"
        )
        if matches:
            return str(matches[0]["id"])

        first_name, _, last_name = (guest_name or "Guest").strip().partition(" ")
        return self.create_record(
            CONTACTS_MODULE,
            {"First_Name": first_name, "Last_Name": last_name or first_name, "Email": email},
        )

    # -------------------------------------------------------------------------
    # RemoteStore
    # -------------------------------------------------------------------------

    def _booking_record(self, values: dict[str, Any], room_label: Optional[str]) -> dict[str, Any]:
        contact_id = None
        if values.get("guest_email"):
            contact_id = self.find_or_create_contact(
                values.get("guest_name") or "", values["guest_email"]
            )
        return booking_to_record(values, contact_id=contact_id, room_label=room_label)

    def create_booking(self, values: dict[str, Any], room_label: Optional[str] = None) -> str:
        return self.create_record(BOOKINGS_MODULE, self._booking_record(values, room_label))

    def update_booking(
        self, booking_id: str, values: dict[str, Any], room_label: Optional[str] = None
    ) -> None:
        self.update_record(BOOKINGS_MODULE, booking_id, self._booking_record(values, room_label))

    def delete_booking(self, booking_id: str) -> None:
        self.delete_record(BOOKINGS_MODULE, booking_id)

    def list_bookings(self) -> list[dict[str, Any]]:
        return self.get_records(BOOKINGS_MODULE)

    def create_room(self, values: dict[str, Any]) -> str:
        return self.create_record(ROOMS_MODULE, room_to_record(values))

    def update_room(self, room_id: str, values: dict[str, Any]) -> None:
        self.update_record(ROOMS_MODULE, room_id, room_to_record(values))

    def delete_room(self, room_id: str) -> None:
        self.delete_record(ROOMS_MODULE, room_id)

    def list_rooms(self) -> list[dict[str, Any]]:
        return self.get_records(ROOMS_MODULE)

    def update_voucher_usage(self, voucher_id: str, used_count: int) -> None:
        self.update_record(VOUCHERS_MODULE, voucher_id, {"Used_Count": used_count})

