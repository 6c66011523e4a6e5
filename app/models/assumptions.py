"""
Simulation assumptions and scenario presets.

Assumptions hold the annual rates (in percent) used for every rate category
that an item does not pin to its own fixed rate.
"""

from typing import Dict, Literal

from pydantic import BaseModel, ConfigDict, Field

AssumptionMode = Literal["fixed", "scenario"]
ScenarioName = Literal["optimistic", "average", "pessimistic", "custom"]


class ScenarioRates(BaseModel):
    """Annual rates per rate category, in percent."""

    model_config = ConfigDict(frozen=True)

    savings: float = Field(default=2.5, ge=-100, le=100, description="Deposit interest")
    investment: float = Field(default=5.0, ge=-100, le=100, description="Market return")
    pension: float = Field(default=5.0, ge=-100, le=100, description="Pension return")
    real_estate: float = Field(default=2.5, ge=-100, le=100, description="Appreciation")
    inflation: float = Field(default=2.5, ge=-100, le=100, description="Price growth")
    income_growth: float = Field(default=3.0, ge=-100, le=100, description="Wage growth")

    def rate_for(self, category: str) -> float:
        """Look up the rate for a category name."""
        return float(getattr(self, category))


class ScenarioPreset(BaseModel):
    """Named preset: category rates plus the reference rate for floating debt."""

    model_config = ConfigDict(frozen=True)

    rates: ScenarioRates
    base_rate: float


SCENARIO_PRESETS: Dict[str, ScenarioPreset] = {
    "optimistic": ScenarioPreset(
        rates=ScenarioRates(
            savings=3.0,
            investment=8.0,
            pension=8.0,
            real_estate=4.0,
            inflation=2.0,
            income_growth=5.0,
        ),
        base_rate=2.5,
    ),
    "average": ScenarioPreset(
        rates=ScenarioRates(
            savings=2.5,
            investment=5.0,
            pension=5.0,
            real_estate=2.5,
            inflation=2.5,
            income_growth=3.0,
        ),
        base_rate=3.5,
    ),
    "pessimistic": ScenarioPreset(
        rates=ScenarioRates(
            savings=1.5,
            investment=2.0,
            pension=2.0,
            real_estate=0.5,
            inflation=4.0,
            income_growth=1.0,
        ),
        base_rate=5.0,
    ),
}


class SimulationAssumptions(BaseModel):
    """
    Rate assumptions for one projection run.

    In ``scenario`` mode with a named preset, category rates and the base rate
    come from ``SCENARIO_PRESETS``. In ``fixed`` mode, or with the ``custom``
    scenario, the supplied ``rates`` and ``base_rate`` are used as given.
    """

    model_config = ConfigDict(frozen=True)

    mode: AssumptionMode = Field(default="scenario")
    scenario: ScenarioName = Field(default="average")
    rates: ScenarioRates = Field(default_factory=ScenarioRates)
    base_rate: float = Field(
        default=3.5, ge=0, le=100, description="Reference rate for floating debt (%)"
    )
    safe_withdrawal_rate: float = Field(
        default=4.0,
        gt=0,
        le=100,
        description="Share of investable assets spendable per year at FI (%)",
    )

    @property
    def uses_preset(self) -> bool:
        return self.mode == "scenario" and self.scenario in SCENARIO_PRESETS

    def resolved_rates(self) -> ScenarioRates:
        """Category rates in effect for this run."""
        if self.uses_preset:
            return SCENARIO_PRESETS[self.scenario].rates
        return self.rates

    def resolved_base_rate(self) -> float:
        """Base rate in effect for this run."""
        if self.uses_preset:
            return SCENARIO_PRESETS[self.scenario].base_rate
        return self.base_rate

    @classmethod
    def from_preset(cls, scenario: str) -> "SimulationAssumptions":
        """Build scenario-mode assumptions for a named preset."""
        if scenario not in SCENARIO_PRESETS:
            raise ValueError(
                f"Unknown scenario preset '{scenario}', "
                f"expected one of {sorted(SCENARIO_PRESETS)}"
            )
        preset = SCENARIO_PRESETS[scenario]
        return cls(
            mode="scenario",
            scenario=scenario,  # type: ignore[arg-type]
            rates=preset.rates,
            base_rate=preset.base_rate,
        )
