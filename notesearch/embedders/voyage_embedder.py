import numpy as np
import voyageai

from notesearch.exceptions import InvalidDimensionError

# Output sizes accepted by the flexible-dimension voyage-3.5 models
VOYAGE_OUTPUT_DIMENSIONS = (256, 512, 1024, 2048)


class VoyageEmbedder:
    def __init__(self, api_key: str, model: str = "voyage-3.5", dimension: int = 1024):
        if dimension not in VOYAGE_OUTPUT_DIMENSIONS:
            raise InvalidDimensionError(
                f"Voyage embeddings support dimensions {VOYAGE_OUTPUT_DIMENSIONS}, got {dimension}"
            )
        self.client = voyageai.Client(api_key=api_key)
        self.model = model
        self.dimension = dimension

    def embed(self, text: str) -> np.ndarray:
        result = self.client.embed(
            texts=[text], model=self.model, input_type="document", output_dimension=self.dimension
        )
        embedding = result.embeddings[0]
        return np.array(embedding, dtype=np.float32)
