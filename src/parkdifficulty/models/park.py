"""Park and map-analysis inputs.

The map-analysis collaborator scans tiles and reports how much land exists in
each ownership state. The calibrator only ever sees these counts.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class ParkSnapshot(BaseModel):
    """Counts describing the park before calibration.

    Attributes:
        park_size: Tiles currently owned by the park
        adjusted_park_size: Owned tiles usable for building (defaults to park_size)
        buyable_land: Tiles of land for sale
        buyable_rights: Tiles of construction rights for sale
        max_owned_to_purchasable_tiles: Owned tiles that could be turned into
            purchasable land (upper bound of the forced land purchase pressure)
        max_unowned_to_purchasable_tiles: Unowned tiles that could be made purchasable
        suggested_guest_maximum: The park's current soft guest cap
        guests: Guests in the park
        guest_initial_cash: Cash the current guests arrived with
    """

    park_size: int = Field(default=0, ge=0)
    adjusted_park_size: int | None = Field(default=None)
    buyable_land: int = Field(default=0, ge=0)
    buyable_rights: int = Field(default=0, ge=0)
    max_owned_to_purchasable_tiles: int = Field(default=0, ge=0)
    max_unowned_to_purchasable_tiles: int = Field(default=0, ge=0)
    suggested_guest_maximum: int = Field(default=0, ge=0)
    guests: int = Field(default=0, ge=0)
    guest_initial_cash: int = Field(default=150, ge=0)

    @model_validator(mode="after")
    def default_adjusted_size(self) -> "ParkSnapshot":
        """Usable land defaults to the whole park."""
        if self.adjusted_park_size is None:
            self.adjusted_park_size = self.park_size
        return self

    @property
    def ownable_tiles(self) -> int:
        """Owned plus purchasable tiles."""
        return self.park_size + self.buyable_land + self.buyable_rights
