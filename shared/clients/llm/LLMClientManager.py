from shared.helper.HelperConfig import HelperConfig
from shared.clients.llm.LLMClientInterface import LLMClientInterface


class LLMClientManager:
    """Manager class to instantiate all configured LLM clients.

    LLM_ENGINES lists the engines in their configured (balanced) order,
    e.g. "[openai,gemini,cohere]".
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.clients = self._initialize_clients()

    def _get_engines_from_env(self) -> list[str]:
        """Read the LLM engine names from env configuration.

        Returns:
            list[str]: Capitalised engine names (e.g. ["Openai", "Gemini"]).

        Raises:
            ValueError: If LLM_ENGINES is not set or empty.
        """
        engines = self.helper_config.get_list_val("LLM_ENGINES")
        if not engines:
            raise ValueError("No LLM engines specified in configuration (LLM_ENGINES).")
        return [engine.strip().lower().capitalize() for engine in engines]

    def _initialize_clients(self) -> dict[str, LLMClientInterface]:
        """Instantiate one LLM client per configured engine.

        Returns:
            dict[str, LLMClientInterface]: Clients keyed by lowercase engine name, in configured order.

        Raises:
            ValueError: If an engine is unsupported or cannot be imported.
        """
        clients: dict[str, LLMClientInterface] = {}
        for engine in self._get_engines_from_env():
            class_name = f"LLMClient{engine}"
            try:
                module = __import__(
                    f"shared.clients.llm.{engine.lower()}.{class_name}",
                    fromlist=[class_name],
                )
                client_class = getattr(module, class_name)
            except (ImportError, AttributeError) as e:
                raise ValueError("Unsupported LLM engine '%s'. Error: %s" % (engine, e))
            clients[engine.lower()] = client_class(helper_config=self.helper_config)
            self.logging.debug("Instantiated LLM client for engine: %s", engine)
        return clients

    def get_clients(self) -> list[LLMClientInterface]:
        """Return all instantiated LLM clients in configured order."""
        return list(self.clients.values())

    def get_client(self, engine: str) -> LLMClientInterface:
        """Return the LLM client of one engine. Raises KeyError if not configured."""
        return self.clients[engine.strip().lower()]
