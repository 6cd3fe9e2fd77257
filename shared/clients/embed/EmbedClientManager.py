from shared.helper.HelperConfig import HelperConfig
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface


class EmbedClientManager:
    """
    Manager class to handle all configured Embed clients.

    EMBED_ENGINES lists the engines in their configured order, e.g.
    "[openai,cohere,gemini]". EMBED_PREFERRED_ENGINE names the provider that
    is tried first for medium-length texts and keys the embedding cache.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.clients = self._initialize_clients()
        self.preferred = self._get_preferred_from_env()

    def _get_engines_from_env(self) -> list[str]:
        """
        Reads the Embed engines from ENV configuration.

        Returns:
            list[str]: The names of the Embed engines, capitalized (e.g. "Openai").

        Raises:
            ValueError: If no Embed engine is specified in the configuration.
        """
        engines = self.helper_config.get_list_val("EMBED_ENGINES")
        if not engines:
            raise ValueError("No Embed engines specified in configuration.")

        #lowercase all and uppcercase first letter for better comparison and display
        return [engine.strip().lower().capitalize() for engine in engines]

    def _get_preferred_from_env(self) -> str:
        preferred = self.helper_config.get_string_val("EMBED_PREFERRED_ENGINE", default="").lower()
        if preferred and preferred not in self.clients:
            self.logging.warning(
                "Preferred Embed engine '%s' is not configured, falling back to '%s'.",
                preferred,
                self.get_engine_names()[0],
            )
            preferred = ""
        return preferred or self.get_engine_names()[0]

    def _initialize_clients(self) -> dict[str, EmbedClientInterface]:
        """
        Initializes one Embed client per configured engine, keeping the configured order.

        Returns:
            dict[str, EmbedClientInterface]: Clients keyed by lowercase engine name.

        Raises:
            ValueError: If an engine is unsupported or no client could be instantiated.
        """
        clients: dict[str, EmbedClientInterface] = {}
        for engine in self._get_engines_from_env():
            className = f"EmbedClient{engine}"
            try:
                module = __import__(
                    f"shared.clients.embed.{engine.lower()}.{className}",
                    fromlist=[className],
                )
                client_class = getattr(module, className)
            except (ImportError, AttributeError) as e:
                raise ValueError(f"Unsupported Embed engine specified: '{engine}'. Error: {e}")
            clients[engine.lower()] = client_class(helper_config=self.helper_config)
            self.logging.debug("Instantiated Embed client for engine: %s", engine)

        if not clients:
            raise ValueError("No valid Embed clients could be instantiated from the specified engines.")
        return clients

    def get_engine_names(self) -> list[str]:
        return list(self.clients.keys())

    def get_clients(self) -> list[EmbedClientInterface]:
        """
        Returns all instantiated Embed clients in configured order.
        """
        return list(self.clients.values())

    def get_client(self, engine: str) -> EmbedClientInterface:
        """
        Returns the Embed client of one engine.

        Raises:
            KeyError: If the engine is not configured.
        """
        return self.clients[engine.strip().lower()]

    def get_preferred_engine(self) -> str:
        return self.preferred
