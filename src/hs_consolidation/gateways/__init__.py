from .embedding import EmbeddingGateway, SentenceTransformerGateway, fetch_embeddings
from .llm import LLMCategorization, LLMCategorizer, parse_categorization
