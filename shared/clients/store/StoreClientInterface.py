from abc import abstractmethod
from typing import Any

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class StoreClientInterface(ClientInterface):
    """Base class of the record store holding profiles, goals, turns, sessions and usage logs.

    Requests are built from per-entity endpoints and filter params. All
    methods return plain rows; typing them is up to the services.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "store"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_profiles(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_goals(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_turns(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_sessions(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_increment_session_messages(self) -> str:
        """
        Returns the endpoint path of the atomic message counter increment.
        """
        pass

    @abstractmethod
    def _get_endpoint_usage_logs(self) -> str:
        pass

    ################ FILTER BUILDER ##################
    @abstractmethod
    def get_equals_params(self, field: str, value: Any, limit: int | None = None, order: str | None = None, descending: bool = False) -> dict:
        """
        Builds query parameters selecting rows where `field` equals `value`.

        Args:
            field (str): Column to filter on.
            value (Any): Value the column must equal.
            limit (int | None): Maximum number of rows.
            order (str | None): Column to order by.
            descending (bool): Order direction.

        Returns:
            dict: The query parameters.
        """
        pass

    @abstractmethod
    def get_active_goals_params(self, user_id: str, limit: int) -> dict:
        pass

    @abstractmethod
    def get_increment_payload(self, session_id: str, by: int) -> dict:
        pass

    def get_insert_headers(self, upsert: bool = False) -> dict:
        """
        Returns extra headers for insert requests. Backends that need none keep the default.
        """
        return {}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_rows(self, raw_response: Any) -> list[dict]:
        if raw_response is None:
            return []
        if isinstance(raw_response, dict):
            return [raw_response]
        return list(raw_response)

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _do_select(self, endpoint: str, params: dict) -> list[dict]:
        resp = await self.do_request(method="GET", params=params, endpoint=endpoint, raise_on_error=True)
        return self.extract_rows(resp.json())

    async def _do_insert(self, endpoint: str, rows: list[dict] | dict, upsert: bool = False) -> None:
        await self.do_request(
            method="POST",
            json=rows,
            endpoint=endpoint,
            additional_headers=self.get_insert_headers(upsert=upsert),
            raise_on_error=True,
        )

    ################ PROFILES / GOALS ##################
    async def do_get_user_profile(self, user_id: str) -> dict | None:
        """Fetch the profile of a user.

        Returns:
            dict | None: The profile row, or None if the user has no profile.
        """
        rows = await self._do_select(self._get_endpoint_profiles(), self.get_equals_params("user_id", user_id, limit=1))
        return rows[0] if rows else None

    async def do_get_active_goals(self, user_id: str, limit: int = 5) -> list[dict]:
        """Fetch up to `limit` active goals of a user, each with id, title and description."""
        return await self._do_select(self._get_endpoint_goals(), self.get_active_goals_params(user_id, limit))

    ################ TURNS ##################
    async def do_append_turns(self, turns: list[dict]) -> None:
        """Append turn rows in the given order. Turns are never updated afterwards."""
        await self._do_insert(self._get_endpoint_turns(), turns)

    async def do_list_session_turns(self, session_id: str, limit: int | None = None, newest_first: bool = False) -> list[dict]:
        """List the turns of a session ordered by creation time."""
        params = self.get_equals_params("session_id", session_id, limit=limit, order="created_at", descending=newest_first)
        return await self._do_select(self._get_endpoint_turns(), params)

    ################ SESSIONS ##################
    async def do_upsert_session(self, session: dict) -> None:
        await self._do_insert(self._get_endpoint_sessions(), session, upsert=True)

    async def do_get_session(self, session_id: str) -> dict | None:
        """Look up a session directly by its id.

        Returns:
            dict | None: The session row, or None if no session has this id.
        """
        rows = await self._do_select(self._get_endpoint_sessions(), self.get_equals_params("session_id", session_id, limit=1))
        return rows[0] if rows else None

    async def do_increment_session_messages(self, session_id: str, by: int = 1) -> None:
        await self.do_request(
            method="POST",
            json=self.get_increment_payload(session_id, by),
            endpoint=self._get_endpoint_increment_session_messages(),
            raise_on_error=True,
        )

    async def do_end_session(self, session_id: str, fields: dict) -> None:
        """Write the final fields of a session (is_active, ended_at, summary, ...) in one update."""
        await self.do_request(
            method="PATCH",
            json=fields,
            params=self.get_equals_params("session_id", session_id),
            endpoint=self._get_endpoint_sessions(),
            raise_on_error=True,
        )

    async def do_list_user_sessions(self, user_id: str, limit: int = 20) -> list[dict]:
        """List the sessions of a user, most recently started first."""
        params = self.get_equals_params("user_id", user_id, limit=limit, order="started_at", descending=True)
        return await self._do_select(self._get_endpoint_sessions(), params)

    ################ USAGE ##################
    async def do_log_embedding_usage(self, record: dict) -> None:
        await self._do_insert(self._get_endpoint_usage_logs(), record)
