"""
Identity platform REST client.

Implements the repository port over the platform's AM (``/am/json``) and IDM
(``/openidm``) endpoints. HTTP failures are translated into domain errors so
the engine never sees transport types.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from app.domain.errors import ConflictError, DomainError, NotFoundError, ValidationError
from app.domain.strategies import encode_base64url

logger = logging.getLogger(__name__)

TREE_API_VERSION = "protocol=2.1,resource=1.0"
SCRIPT_API_VERSION = "protocol=2.0,resource=1.0"
SAML2_API_VERSION = "protocol=2.1,resource=1.0"
IDM_API_VERSION = "protocol=1.0,resource=1.0"

THEMEREALM_ID = "ui/themerealm"
EMAIL_TEMPLATE_PREFIX = "emailTemplate/"
INVALID_ATTRIBUTE_MESSAGE = "Invalid attribute specified."


def realm_path(realm: str) -> str:
    """'alpha' -> '/realms/root/realms/alpha', '/' or 'root' -> '/realms/root'."""
    parts = [part for part in realm.strip("/").split("/") if part and part != "root"]
    return "/realms/root" + "".join(f"/realms/{part}" for part in parts)


def _segment(value: str) -> str:
    return quote(value, safe="")


def _rejected_attributes(body: Dict[str, Any], payload: Optional[Dict[str, Any]]) -> ValidationError:
    message = body.get("message") or "Invalid request"
    detail = body.get("detail") or {}
    valid = list(detail.get("validAttributes") or [])
    invalid = list(detail.get("invalidAttributes") or [])
    if valid and payload is not None and not invalid:
        invalid = [key for key in payload if key not in valid and key != "_id"]
    if not valid and not invalid and "script" in message.lower():
        invalid = ["script"]
    return ValidationError(message, invalid_attributes=invalid, valid_attributes=valid)


def translate_error(error: httpx.HTTPStatusError, payload: Optional[Dict[str, Any]] = None) -> DomainError:
    """Map a platform error response onto the domain error hierarchy."""
    response = error.response
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = body.get("message") or f"{response.status_code} {response.reason_phrase}"
    if response.status_code == 404:
        return NotFoundError(message)
    if response.status_code == 409:
        return ConflictError(message)
    if response.status_code == 400 and (
        message == INVALID_ATTRIBUTE_MESSAGE or body.get("detail") or "script" in message.lower()
    ):
        return _rejected_attributes(body, payload)
    if response.status_code in (400, 422):
        return ValidationError(message)
    return DomainError(f"{response.request.method} {response.request.url.path} failed: {message}")


class HttpRepository:
    """Realm-scoped access to trees, nodes and their satellite configuration."""

    def __init__(
        self,
        host: str,
        realm: str = "alpha",
        access_token: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            host: Platform base URL (e.g. https://openam-tenant.example.com)
            realm: Realm name or path
            access_token: Bearer token sent with every request
            timeout: Request timeout in seconds
            transport: Optional transport, used by tests to mock the platform
        """
        self.host = host.rstrip("/")
        self.realm = realm
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.access_token:
                headers["Authorization"] = f"Bearer {self.access_token}"
            self._client = httpx.Client(
                base_url=self.host,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    @property
    def _am(self) -> str:
        return f"/am/json{realm_path(self.realm)}"

    @property
    def _realm_name(self) -> str:
        return self.realm.rstrip("/").split("/")[-1] or "root"

    def _request(
        self,
        method: str,
        url: str,
        api_version: str = TREE_API_VERSION,
        payload: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> Any:
        headers = {"Accept-API-Version": api_version}
        try:
            response = self.client.request(method, url, headers=headers, json=payload, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise translate_error(e, payload) from e
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise DomainError(f"{method} {url} failed: {e}") from e
        if not response.content:
            return {}
        if "json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    def _query(self, url: str, api_version: str = TREE_API_VERSION) -> List[Dict[str, Any]]:
        return self._request("GET", url, api_version, params={"_queryFilter": "true"}).get("result", [])

    # Trees
    @property
    def _trees_url(self) -> str:
        return f"{self._am}/realm-config/authentication/authenticationtrees/trees"

    def get_trees(self) -> List[Dict[str, Any]]:
        return self._query(self._trees_url)

    def get_tree(self, tree_id: str) -> Dict[str, Any]:
        return self._request("GET", f"{self._trees_url}/{_segment(tree_id)}")

    def put_tree(self, tree_id: str, tree_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"{self._trees_url}/{_segment(tree_id)}", payload=tree_data)

    def delete_tree(self, tree_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"{self._trees_url}/{_segment(tree_id)}")

    # Nodes
    @property
    def _nodes_url(self) -> str:
        return f"{self._am}/realm-config/authentication/authenticationtrees/nodes"

    def get_node_types(self) -> List[Dict[str, Any]]:
        return self._request("POST", self._nodes_url, params={"_action": "getAllTypes"}).get("result", [])

    def get_nodes_by_type(self, node_type: str) -> List[Dict[str, Any]]:
        return self._query(f"{self._nodes_url}/{_segment(node_type)}")

    def get_node(self, node_id: str, node_type: str) -> Dict[str, Any]:
        return self._request("GET", f"{self._nodes_url}/{_segment(node_type)}/{_segment(node_id)}")

    def put_node(self, node_id: str, node_type: str, node_data: Dict[str, Any]) -> Dict[str, Any]:
        payload = {key: value for key, value in node_data.items() if key not in ("_type", "_rev")}
        return self._request(
            "PUT", f"{self._nodes_url}/{_segment(node_type)}/{_segment(node_id)}", payload=payload
        )

    def delete_node(self, node_id: str, node_type: str) -> Dict[str, Any]:
        return self._request("DELETE", f"{self._nodes_url}/{_segment(node_type)}/{_segment(node_id)}")

    # Scripts
    def get_script(self, script_id: str) -> Dict[str, Any]:
        return self._request("GET", f"{self._am}/scripts/{_segment(script_id)}", SCRIPT_API_VERSION)

    def put_script(self, script_id: str, script_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request(
            "PUT", f"{self._am}/scripts/{_segment(script_id)}", SCRIPT_API_VERSION, payload=script_data
        )

    def delete_script(self, script_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"{self._am}/scripts/{_segment(script_id)}", SCRIPT_API_VERSION)

    # IDM configuration (email templates, themes)
    def _get_config(self, entity_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/openidm/config/{entity_id}", IDM_API_VERSION)

    def _put_config(self, entity_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/openidm/config/{entity_id}", IDM_API_VERSION, payload=data)

    def get_email_template(self, template_id: str) -> Dict[str, Any]:
        return self._get_config(f"{EMAIL_TEMPLATE_PREFIX}{template_id}")

    def put_email_template(self, template_id: str, template_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._put_config(f"{EMAIL_TEMPLATE_PREFIX}{template_id}", template_data)

    def delete_email_template(self, template_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/openidm/config/{EMAIL_TEMPLATE_PREFIX}{template_id}", IDM_API_VERSION)

    def _theme_realms(self) -> Dict[str, Any]:
        themes = self._get_config(THEMEREALM_ID)
        themes.setdefault("realm", {})
        return themes

    def get_themes(self) -> List[Dict[str, Any]]:
        return self._theme_realms()["realm"].get(self._realm_name, [])

    def put_themes(self, themes: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
        all_themes = self._theme_realms()
        realm_themes = {theme["_id"]: theme for theme in all_themes["realm"].get(self._realm_name, [])}
        for theme_id, theme in themes.items():
            realm_themes[theme_id] = dict(theme, _id=theme_id)
        # Only one theme per realm may be the default
        if any(theme.get("isDefault") for theme in themes.values()):
            for theme_id, theme in realm_themes.items():
                if theme_id not in themes:
                    theme["isDefault"] = False
        all_themes["realm"][self._realm_name] = list(realm_themes.values())
        self._put_config(THEMEREALM_ID, all_themes)
        return [realm_themes[theme_id] for theme_id in themes]

    def delete_theme(self, theme_id: str) -> Dict[str, Any]:
        all_themes = self._theme_realms()
        realm_themes = all_themes["realm"].get(self._realm_name, [])
        deleted = next((theme for theme in realm_themes if theme["_id"] == theme_id), None)
        if deleted is None:
            raise NotFoundError(f"theme {theme_id} not found")
        all_themes["realm"][self._realm_name] = [theme for theme in realm_themes if theme["_id"] != theme_id]
        self._put_config(THEMEREALM_ID, all_themes)
        return deleted

    # SAML2 entity providers
    @property
    def _saml2_url(self) -> str:
        return f"{self._am}/realm-config/saml2"

    def get_saml2_provider_stubs(self) -> List[Dict[str, Any]]:
        return self._query(self._saml2_url, SAML2_API_VERSION)

    def find_saml2_providers(self, entity_id: str) -> List[Dict[str, Any]]:
        return self._request(
            "GET",
            self._saml2_url,
            SAML2_API_VERSION,
            params={"_queryFilter": f'entityId eq "{entity_id}"', "_fields": "location"},
        ).get("result", [])

    def get_saml2_provider(self, location: str, entity_id64: str) -> Dict[str, Any]:
        return self._request(
            "GET", f"{self._saml2_url}/{_segment(location)}/{_segment(entity_id64)}", SAML2_API_VERSION
        )

    def get_saml2_metadata(self, entity_id: str) -> str:
        return self._request(
            "GET",
            "/am/saml2/jsp/exportmetadata.jsp",
            SAML2_API_VERSION,
            params={"entityid": entity_id, "realm": "/" + "/".join(realm_path(self.realm).split("/realms/")[2:])},
        )

    def create_saml2_provider(
        self, location: str, provider_data: Dict[str, Any], metadata: Optional[str] = None
    ) -> Dict[str, Any]:
        if location == "remote":
            return self._request(
                "POST",
                f"{self._saml2_url}/remote/",
                SAML2_API_VERSION,
                payload={"standardMetadata": metadata},
                params={"_action": "importEntity"},
            )
        return self._request(
            "POST",
            f"{self._saml2_url}/hosted/",
            SAML2_API_VERSION,
            payload=provider_data,
            params={"_action": "create"},
        )

    def update_saml2_provider(self, location: str, provider_data: Dict[str, Any]) -> Dict[str, Any]:
        entity_id64 = encode_base64url(provider_data["entityId"])
        return self._request(
            "PUT",
            f"{self._saml2_url}/{_segment(location)}/{_segment(entity_id64)}",
            SAML2_API_VERSION,
            payload=provider_data,
        )

    def delete_saml2_provider(self, location: str, entity_id64: str) -> Dict[str, Any]:
        return self._request(
            "DELETE", f"{self._saml2_url}/{_segment(location)}/{_segment(entity_id64)}", SAML2_API_VERSION
        )

    # Circles of trust
    @property
    def _cot_url(self) -> str:
        return f"{self._am}/realm-config/federation/circlesoftrust"

    def get_circles_of_trust(self) -> List[Dict[str, Any]]:
        return self._query(self._cot_url, SAML2_API_VERSION)

    def create_circle_of_trust(self, cot_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request(
            "POST", f"{self._cot_url}/", SAML2_API_VERSION, payload=cot_data, params={"_action": "create"}
        )

    def update_circle_of_trust(self, cot_id: str, cot_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"{self._cot_url}/{_segment(cot_id)}", SAML2_API_VERSION, payload=cot_data)

    def delete_circle_of_trust(self, cot_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"{self._cot_url}/{_segment(cot_id)}", SAML2_API_VERSION)

    # Social identity providers
    @property
    def _social_url(self) -> str:
        return f"{self._am}/realm-config/services/SocialIdentityProviders"

    def get_social_identity_providers(self) -> List[Dict[str, Any]]:
        return self._request("POST", self._social_url, params={"_action": "nextdescendents"}).get("result", [])

    def put_social_identity_provider(
        self, provider_type: str, provider_id: str, provider_data: Dict[str, Any]
    ) -> Dict[str, Any]:
        payload = {key: value for key, value in provider_data.items() if key != "_type"}
        return self._request(
            "PUT", f"{self._social_url}/{_segment(provider_type)}/{_segment(provider_id)}", payload=payload
        )

    def delete_social_identity_provider(self, provider_type: str, provider_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"{self._social_url}/{_segment(provider_type)}/{_segment(provider_id)}")
