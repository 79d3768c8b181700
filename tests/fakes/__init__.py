from tests.fakes.fake_embedder import FakeEmbedder
from tests.fakes.fake_index_table import FailingIndexTable

__all__ = ["FakeEmbedder", "FailingIndexTable"]
