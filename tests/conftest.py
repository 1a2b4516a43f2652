"""Shared fixtures: a small mixed record set, engine and sessions."""

from __future__ import annotations

import pytest

from chemsearch.core.analytics import AnalyticsTracker
from chemsearch.core.engine import SearchEngine
from chemsearch.core.fields import FieldWeightConfig
from chemsearch.core.index import SearchIndex, build_index
from chemsearch.core.schema import Calculator, Compound, Element, HelpArticle
from chemsearch.core.session import SearchSession
from chemsearch.core.storage import MemoryStorage


@pytest.fixture
def records():
    return [
        Compound(
            id="nacl",
            title="Sodium Chloride",
            formula="NaCl",
            molecular_mass=58.44,
            category="salt",
            tags=["salt", "ionic"],
            hazard_tags=["irritant"],
        ),
        Compound(
            id="nahco3",
            title="Sodium Bicarbonate",
            formula="NaHCO3",
            molecular_mass=84.007,
            category="salt",
            tags=["salt", "base"],
        ),
        Compound(
            id="hcl",
            title="Hydrochloric Acid",
            formula="HCl",
            molecular_mass=36.46,
            category="acid",
            tags=["acid", "mineral acid"],
            hazard_tags=["corrosive", "toxic"],
        ),
        Compound(
            id="acetic",
            title="Acetic Acid",
            formula="CH3COOH",
            molecular_mass=60.05,
            category="acid",
            tags=["acid", "organic"],
            hazard_tags=["corrosive", "flammable"],
        ),
        Compound(
            id="citric",
            title="Citric Acid",
            formula="C6H8O7",
            molecular_mass=192.12,
            category="acid",
            tags=["acid", "organic"],
        ),
        Compound(
            id="glucose",
            title="Glucose",
            formula="C6H12O6",
            molecular_mass=180.16,
            category="carbohydrate",
            tags=["organic", "sugar"],
        ),
        Compound(id="mystery", title="Mystery Powder", tags=["unknown"]),
        Element(id="H", title="Hydrogen", symbol="H", atomic_number=1, block="s", category="nonmetal"),
        Element(id="Na", title="Sodium", symbol="Na", atomic_number=11, block="s", category="alkali metal"),
        Element(id="Cl", title="Chlorine", symbol="Cl", atomic_number=17, block="p", category="halogen"),
        Calculator(
            id="stoichiometry",
            title="Stoichiometry Calculator",
            description="Calculate reaction stoichiometry and limiting reagents",
            calc_type="stoichiometry",
            difficulty="intermediate",
            educational_level=["high-school", "college"],
            category="reactions",
        ),
        Calculator(
            id="molecular-weight",
            title="Molecular Weight Calculator",
            description="Calculate molecular weights from chemical formulas",
            calc_type="molecular-weight",
            difficulty="basic",
            educational_level=["middle-school", "high-school", "college"],
            category="properties",
        ),
        HelpArticle(
            id="acid-base",
            title="Acid-Base Chemistry",
            content="Understanding pH, buffers and neutralization",
            tags=["acids", "bases", "ph"],
            difficulty="intermediate",
            category="concept",
        ),
    ]


@pytest.fixture
def config() -> FieldWeightConfig:
    return FieldWeightConfig()


@pytest.fixture
def index(records, config) -> SearchIndex:
    return build_index(records, config)


@pytest.fixture
def engine(records, config) -> SearchEngine:
    return SearchEngine(records, config)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def session(engine, storage) -> SearchSession:
    return SearchSession(engine, storage=storage, analytics=AnalyticsTracker(storage))


@pytest.fixture
def anyio_backend():
    return "asyncio"
