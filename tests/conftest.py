from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import pytest

from tests._fixtures.registry_builder import RegistryBuilder, sample_registry


@pytest.fixture
def registry_builder(tmp_path: Path) -> RegistryBuilder:
    """Provide a reusable registry writer rooted at the pytest tmp_path."""
    return RegistryBuilder(tmp_path)


@pytest.fixture
def registry() -> Dict[str, Any]:
    """A fresh copy of the sample registry document."""
    return sample_registry()
