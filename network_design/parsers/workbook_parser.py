"""Typed workbook reader for scenario inputs.

Reads fixed sheet and column names only. A workbook (.xlsx/.xlsm) or a
directory of CSV files named after the sheets (``facilities.csv``, ...) is
accepted:

- Facilities: id, name?, latitude?, longitude?, region?, capacity?, fixed_cost?, mandatory?
- Destinations: id, name?, latitude?, longitude?, region?, demand
- Forecast: year, annual_units
- SKUs: id, annual_volume, units_per_case, cases_per_pallet
- Baseline (optional): mode, cost, year?
- CostMatrix (optional): facility_id, destination_id, unit_cost, distance_miles?
- Config (optional): key, value (dotted keys such as ``warehouse.max_utilization``)
- DemandByYear (optional): year, destination_id, demand
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Set
import json
import logging

import pandas as pd
from pydantic import ValidationError

from ..config import OptimizationConfig
from ..errors import InputValidationError
from ..models import (
    SKU,
    BaselineCost,
    Coordinates,
    CostMatrix,
    DemandPoint,
    FacilityCandidate,
    VolumeForecast,
)

logger = logging.getLogger(__name__)

TRUE_VALUES = {"true", "yes", "y", "1", "x"}


class WorkbookParser:
    """
    Parser for scenario input workbooks.

    Example:
        parser = WorkbookParser("network.xlsx")
        facilities = parser.parse_facilities()
        config = parser.parse_config()
        inputs = parser.to_scenario_inputs("base case")
    """

    SHEETS = {
        "Facilities": {"id"},
        "Destinations": {"id", "demand"},
        "Forecast": {"year", "annual_units"},
        "SKUs": {"id", "annual_volume", "units_per_case", "cases_per_pallet"},
        "Baseline": {"mode", "cost"},
        "CostMatrix": {"facility_id", "destination_id", "unit_cost"},
        "Config": {"key", "value"},
        "DemandByYear": {"year", "destination_id", "demand"},
    }

    def __init__(self, path: Path | str):
        """
        Args:
            path: Workbook (.xlsx or .xlsm) or directory of CSV files

        Raises:
            FileNotFoundError: If the path does not exist
            ValueError: If the file type is not supported
        """
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if self.path.is_file() and self.path.suffix.lower() not in [".xlsx", ".xlsm"]:
            raise ValueError(f"File must be .xlsx, .xlsm or a directory of CSV files: {path}")
        self._sheet_names: Optional[Set[str]] = None

    @property
    def is_csv_directory(self) -> bool:
        return self.path.is_dir()

    def sheet_names(self) -> Set[str]:
        if self._sheet_names is None:
            if self.is_csv_directory:
                stems = {p.stem.lower() for p in self.path.glob("*.csv")}
                self._sheet_names = {s for s in self.SHEETS if s.lower() in stems}
            else:
                with pd.ExcelFile(self.path, engine="openpyxl") as xl:
                    self._sheet_names = set(xl.sheet_names)
        return self._sheet_names

    def has_sheet(self, sheet_name: str) -> bool:
        return sheet_name in self.sheet_names()

    def read_sheet(self, sheet_name: str) -> pd.DataFrame:
        """
        Read one sheet and check its required columns.

        Raises:
            InputValidationError: If the sheet or a required column is missing
        """
        if not self.has_sheet(sheet_name):
            raise InputValidationError(f"Missing required sheet: {sheet_name}")
        if self.is_csv_directory:
            df = pd.read_csv(self.path / f"{sheet_name.lower()}.csv")
        else:
            df = pd.read_excel(self.path, sheet_name=sheet_name, engine="openpyxl")

        df.columns = [str(c).strip().lower() for c in df.columns]
        df = df.dropna(how="all")
        required = self.SHEETS.get(sheet_name, set())
        missing = required - set(df.columns)
        if missing:
            raise InputValidationError(
                f"Sheet '{sheet_name}' is missing required columns: {sorted(missing)}",
                problems=[f"{sheet_name}.{c}" for c in sorted(missing)],
            )
        return df

    def parse_facilities(self, sheet_name: str = "Facilities") -> List[FacilityCandidate]:
        df = self.read_sheet(sheet_name)
        facilities = []
        for i, row in df.iterrows():
            params = self._location_params(row)
            params["capacity"] = _optional_float(row, "capacity")
            params["fixed_cost"] = _optional_float(row, "fixed_cost")
            params["mandatory"] = _truthy(row.get("mandatory"))
            facilities.append(_build(FacilityCandidate, params, sheet_name, i))
        logger.info(f"Parsed {len(facilities)} facilities from {self.path.name}")
        return facilities

    def parse_destinations(self, sheet_name: str = "Destinations") -> List[DemandPoint]:
        df = self.read_sheet(sheet_name)
        destinations = []
        for i, row in df.iterrows():
            params = self._location_params(row)
            params["demand"] = _optional_float(row, "demand")
            destinations.append(_build(DemandPoint, params, sheet_name, i))
        logger.info(f"Parsed {len(destinations)} destinations from {self.path.name}")
        return destinations

    def parse_forecast(self, sheet_name: str = "Forecast") -> VolumeForecast:
        df = self.read_sheet(sheet_name)
        pairs = [(int(row["year"]), float(row["annual_units"])) for _, row in df.iterrows()]
        try:
            return VolumeForecast.from_pairs(pairs)
        except ValidationError as e:
            raise InputValidationError(f"Invalid forecast in sheet '{sheet_name}': {e}") from e

    def parse_skus(self, sheet_name: str = "SKUs") -> List[SKU]:
        df = self.read_sheet(sheet_name)
        skus = []
        for i, row in df.iterrows():
            params = {
                "id": str(row["id"]),
                "annual_volume": float(row["annual_volume"]),
                "units_per_case": float(row["units_per_case"]),
                "cases_per_pallet": float(row["cases_per_pallet"]),
            }
            skus.append(_build(SKU, params, sheet_name, i))
        return skus

    def parse_baseline(self, sheet_name: str = "Baseline") -> Optional[BaselineCost]:
        """Verified baseline from mode/cost rows, or None if the sheet is absent."""
        if not self.has_sheet(sheet_name):
            return None
        df = self.read_sheet(sheet_name)
        breakdown: Dict[str, float] = {}
        for _, row in df.iterrows():
            mode = str(row["mode"])
            breakdown[mode] = breakdown.get(mode, 0.0) + float(row["cost"])
        year = None
        if "year" in df.columns and df["year"].notna().any():
            year = int(df["year"].dropna().iloc[0])
        params = {"total_cost": sum(breakdown.values()), "year": year, "mode_breakdown": breakdown}
        return _build(BaselineCost, params, sheet_name, 0)

    def parse_cost_matrix(self, sheet_name: str = "CostMatrix") -> Optional[CostMatrix]:
        """Explicit cost matrix in long format, or None if the sheet is absent."""
        if not self.has_sheet(sheet_name):
            return None
        df = self.read_sheet(sheet_name)
        costs = {}
        distances = {} if "distance_miles" in df.columns else None
        for _, row in df.iterrows():
            key = (str(row["facility_id"]), str(row["destination_id"]))
            costs[key] = float(row["unit_cost"])
            if distances is not None and pd.notna(row["distance_miles"]):
                distances[key] = float(row["distance_miles"])
        if distances is not None and len(distances) < len(costs):
            logger.warning(f"Sheet '{sheet_name}' has partial distances; ignoring the distance column")
            distances = None
        try:
            return CostMatrix.from_pairs(costs, distances)
        except ValidationError as e:
            raise InputValidationError(f"Invalid cost matrix in sheet '{sheet_name}': {e}") from e

    def parse_demand_by_year(self, sheet_name: str = "DemandByYear") -> Optional[Dict[int, Dict[str, float]]]:
        """Explicit year -> destination demand maps, or None if the sheet is absent."""
        if not self.has_sheet(sheet_name):
            return None
        df = self.read_sheet(sheet_name)
        demand: Dict[int, Dict[str, float]] = {}
        for i, row in df.iterrows():
            value = float(row["demand"])
            if value < 0:
                raise InputValidationError(f"{sheet_name} row {i}: demand must be non-negative")
            year_map = demand.setdefault(int(row["year"]), {})
            destination = str(row["destination_id"])
            year_map[destination] = year_map.get(destination, 0.0) + value
        return demand

    def parse_config_values(self, sheet_name: str = "Config") -> Dict[str, Any]:
        """Dotted key -> value mapping (empty if the sheet is absent)."""
        if not self.has_sheet(sheet_name):
            return {}
        df = self.read_sheet(sheet_name)
        values = {}
        for _, row in df.iterrows():
            if pd.isna(row["key"]):
                continue
            key = str(row["key"]).strip()
            values[key] = _config_value(key, row["value"])
        return values

    def parse_config(self, sheet_name: str = "Config") -> OptimizationConfig:
        return OptimizationConfig.from_flat(self.parse_config_values(sheet_name))

    def to_scenario_inputs(self, name: Optional[str] = None, **overrides):
        """
        Read every sheet into a ScenarioInputs snapshot.

        Args:
            name: Scenario name (default: file stem)
            **overrides: Extra ScenarioInputs fields (e.g. fixed_network=True)
        """
        from ..scenario.orchestrator import ScenarioInputs

        if "demand_by_year" not in overrides:
            overrides["demand_by_year"] = self.parse_demand_by_year()
        return ScenarioInputs(
            name=name or self.path.stem,
            facilities=self.parse_facilities(),
            destinations=self.parse_destinations(),
            forecast=self.parse_forecast(),
            skus=self.parse_skus(),
            baseline=self.parse_baseline(),
            cost_matrix=self.parse_cost_matrix(),
            config=self.parse_config(),
            **overrides,
        )

    @staticmethod
    def _location_params(row: pd.Series) -> Dict[str, Any]:
        lat = _optional_float(row, "latitude")
        lon = _optional_float(row, "longitude")
        region = row.get("region")
        return {
            "id": str(row["id"]),
            "name": str(row["name"]) if "name" in row and pd.notna(row["name"]) else "",
            "coordinates": {"latitude": lat, "longitude": lon} if lat is not None and lon is not None else None,
            "region": str(region) if region is not None and pd.notna(region) else None,
        }


def _optional_float(row: pd.Series, column: str) -> Optional[float]:
    if column in row and pd.notna(row[column]):
        return float(row[column])
    return None


def _truthy(value: Any) -> bool:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return False
    if isinstance(value, str):
        return value.strip().lower() in TRUE_VALUES
    return bool(value)


def _config_value(key: str, value: Any) -> Any:
    if not isinstance(value, str) and pd.isna(value):
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("[") or text.startswith("{"):
            try:
                return json.loads(text)
            except json.JSONDecodeError as e:
                raise InputValidationError(f"Config value for '{key}' is not valid JSON: {text}") from e
        if key.endswith("mandatory_facilities"):
            return [part.strip() for part in text.split(",") if part.strip()]
        return text
    if key.endswith("mandatory_facilities"):
        return [str(value)]
    return value.item() if hasattr(value, "item") else value


def _build(model, params: Dict[str, Any], sheet_name: str, index: Any):
    try:
        return model.model_validate(params)
    except ValidationError as e:
        problems = [
            f"{sheet_name} row {index}: {'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise InputValidationError(problems[0], problems=problems) from e
