import os
import sys

from dotenv import load_dotenv
from langchain_google_genai import ChatGoogleGenerativeAI, GoogleGenerativeAIEmbeddings
from langchain_groq import ChatGroq

from persona_chat.exception.custom_exception import ConfigurationError
from persona_chat.logger import GLOBAL_LOGGER as log
from persona_chat.utils.config_loader import load_config

# provider -> env var holding its credential
PROVIDER_KEYS = {
    "google": "GOOGLE_API_KEY",
    "groq": "GROQ_API_KEY",
}


class ApiKeyManager:
    def __init__(self, required: list[str]):
        load_dotenv()
        self.required = required
        self.keys = {}

        # Iterate over the required keys:
        for k in self.required:
            if val := os.getenv(k):
                self.keys[k] = val
                log.info("Loaded %s from env", k)
            else:
                log.error("Missing required API key: %s", k)

        if len(self.keys) != len(self.required):
            missing = [k for k in self.required if k not in self.keys]
            raise ConfigurationError(f"Missing API keys: {', '.join(missing)}", sys)

    def get(self, key: str) -> str:
        return self.keys[key]


class ModelLoader:
    """
    Responsible for:
    - Validating provider credentials up front (fail fast at startup)
    - Loading the embedding model
    - Loading the RAG chat model
    """

    def __init__(self, config: dict | None = None):
        self.config = config if config is not None else load_config()
        log.info("YAML config loaded | config_keys=%s", list(self.config.keys()))

        # only the providers that the config actually uses need a key
        providers = {self.config["embedding_model"]["provider"]}
        providers.add(self.config["llm"]["rag"]["provider"])

        required = []
        for provider in sorted(providers):
            if provider not in PROVIDER_KEYS:
                raise ConfigurationError(f"Unsupported provider {provider}", sys)
            required.append(PROVIDER_KEYS[provider])

        self.api_key_mgr = ApiKeyManager(required)
        self.api_keys = self.api_key_mgr.keys

    def load_embeddings(self):
        """
        Load and return embedding model from Google Generative AI.
        """
        model_name = self.config["embedding_model"]["model_name"]
        log.info("Loading embedding model | model=%s", model_name)
        try:
            return GoogleGenerativeAIEmbeddings(
                model=model_name, google_api_key=self.api_keys.get("GOOGLE_API_KEY")
            )
        except Exception as e:
            log.error("Error loading embedding model | error=%s", str(e))
            raise ConfigurationError("Failed to load embedding model", e) from e

    def load_llm(self, role: str = "rag"):
        """
        Load and return the configured chat model for a role.
        """
        if role not in self.config["llm"]:
            log.error("LLM role not found in config | role=%s", role)
            raise ConfigurationError(f"LLM role '{role}' not found in config")

        llm_config = self.config["llm"][role]

        provider = llm_config["provider"]
        model = llm_config["model_name"]
        temp = llm_config.get("temperature")
        max_t = llm_config.get("max_tokens")

        log.info("Loading LLM | role=%s | provider=%s | model=%s", role, provider, model)

        if provider == "google":
            return ChatGoogleGenerativeAI(
                model=model,
                google_api_key=self.api_keys.get("GOOGLE_API_KEY"),
                temperature=temp,
                max_output_tokens=max_t,
            )

        if provider == "groq":
            return ChatGroq(
                model=model,
                api_key=self.api_keys.get("GROQ_API_KEY"),
                temperature=temp,
                max_tokens=max_t,
            )

        raise ConfigurationError(f"Unsupported provider {provider}")
