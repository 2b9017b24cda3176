from __future__ import annotations

import logging
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field

from concierge.application.exceptions import InvalidToolInput
from concierge.application.ports.amenity_availability import AmenityAvailabilityPort
from concierge.application.tools.base import Tool, ToolName
from concierge.domain.entities.amenity import AmenityBookingData, AmenityProfile, AmenityType, TimeSlot
from concierge.domain.entities.temporal_context import TemporalContext
from concierge.widgets.amenity_booking import AmenityBookingSkeleton, AmenityBookingWidget

AMENITY_CATALOG: dict[AmenityType, AmenityProfile] = {
    AmenityType.padel: AmenityProfile(
        amenity_type=AmenityType.padel,
        name="Pista de Pádel",
        location="Nivel -1, Zona Deportiva",
        max_duration=90,
        rules=(
            "Máximo 4 jugadores por reserva",
            "Calzado deportivo obligatorio",
            "Cancelación gratuita hasta 2h antes",
        ),
    ),
    AmenityType.tennis: AmenityProfile(
        amenity_type=AmenityType.tennis,
        name="Pista de Tenis",
        location="Nivel -1, Zona Deportiva",
        max_duration=120,
        rules=(
            "Máximo 4 jugadores",
            "Raquetas disponibles en recepción",
            "Cancelación gratuita hasta 2h antes",
        ),
    ),
    AmenityType.pool: AmenityProfile(
        amenity_type=AmenityType.pool,
        name="Piscina Climatizada",
        location="Nivel 2, Área Wellness",
        max_duration=120,
        rules=(
            "Aforo máximo: 20 personas",
            "Gorro de baño obligatorio",
            "Duchas antes de entrar",
        ),
    ),
    AmenityType.gym: AmenityProfile(
        amenity_type=AmenityType.gym,
        name="Gimnasio",
        location="Nivel 2, Área Wellness",
        max_duration=120,
        rules=(
            "Toalla obligatoria",
            "Limpiar equipos después de usar",
            "Entrenadores disponibles bajo cita",
        ),
    ),
    AmenityType.spa: AmenityProfile(
        amenity_type=AmenityType.spa,
        name="Spa & Wellness",
        location="Nivel 2, Área Wellness",
        max_duration=90,
        rules=(
            "Reserva requerida",
            "Llegar 10 min antes",
            "Servicios adicionales disponibles",
        ),
        price=25,
    ),
    AmenityType.coworking: AmenityProfile(
        amenity_type=AmenityType.coworking,
        name="Sala de Coworking",
        location="Nivel 1, Business Center",
        max_duration=480,
        rules=(
            "WiFi premium incluido",
            "Café y snacks disponibles",
            "Salas de reuniones bajo reserva",
        ),
    ),
    AmenityType.cinema: AmenityProfile(
        amenity_type=AmenityType.cinema,
        name="Cine Privado",
        location="Nivel -1, Área de Entretenimiento",
        max_duration=180,
        rules=(
            "Capacidad: 12 personas",
            "Catálogo de películas en tablet",
            "Servicio de catering disponible",
        ),
    ),
    AmenityType.rooftop: AmenityProfile(
        amenity_type=AmenityType.rooftop,
        name="Rooftop Lounge",
        location="Nivel 15, Terraza",
        max_duration=180,
        rules=(
            "Solo adultos después de las 21h",
            "Bar service disponible",
            "Reserva obligatoria para grupos > 6",
        ),
        # Evening-only venue.
        opening_hour=18,
        closing_hour=24,
    ),
}


class BookAmenityParameters(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amenity_type: AmenityType = Field(
        ...,
        alias="amenityType",
        description="El tipo de amenity a reservar: padel, tennis, pool, gym, spa, coworking, cinema, rooftop",
    )
    date: str = Field(
        ...,
        description="La fecha para la reserva. Puede ser 'today', 'tomorrow', 'next_week' o una fecha ISO (YYYY-MM-DD)",
    )
    preferred_time: str | None = Field(
        None,
        alias="preferredTime",
        pattern=r"^([01]\d|2[0-3]):[0-5]\d$",
        description="Hora preferida en formato HH:mm (opcional)",
    )
    duration: int | None = Field(None, gt=0, description="Duración deseada en minutos (opcional)")


def _start_minutes(slot: TimeSlot) -> int:
    hours, minutes = slot.start_time.split(":")
    return int(hours) * 60 + int(minutes)


class BookAmenityTool(Tool):
    name = ToolName.book_amenity
    description = (
        "Reservar un amenity del complejo residencial.\n"
        "Usa esta herramienta cuando el usuario quiera reservar o consultar disponibilidad de:\n"
        "- Pistas de pádel o tenis\n"
        "- Gimnasio, piscina o spa\n"
        "- Sala de coworking\n"
        "- Cine privado\n"
        "- Rooftop lounge\n"
        "\n"
        "La herramienta mostrará los horarios disponibles para que el usuario elija."
    )
    parameters = BookAmenityParameters
    component = AmenityBookingWidget
    skeleton = AmenityBookingSkeleton
    display_name = "Reserva de Amenity"
    category = "amenities"
    date_fields = ("date",)

    def __init__(
        self,
        availability: AmenityAvailabilityPort,
        catalog: Mapping[AmenityType, AmenityProfile] | None = None,
    ) -> None:
        self._availability = availability
        self._catalog = dict(catalog or AMENITY_CATALOG)
        self._logger = logging.getLogger(__name__)

    async def execute(self, params: BookAmenityParameters, context: TemporalContext) -> AmenityBookingData:
        profile = self._catalog[params.amenity_type]

        if params.duration is not None and params.duration > profile.max_duration:
            raise InvalidToolInput(
                self.name.value,
                ["duration"],
                [{"field": "duration", "message": f"Maximum duration for {profile.name} is {profile.max_duration} minutes"}],
            )

        slots = await self._availability.find_slots(profile, params.date, params.preferred_time)
        slots = sorted(slots, key=_start_minutes)
        if len({slot.id for slot in slots}) != len(slots):
            raise ValueError(f"Availability backend returned duplicate slot ids for {profile.name} on {params.date}")

        self._logger.info(
            "Amenity slots generated",
            extra={"tool_name": self.name.value, "amenity": profile.amenity_type.value, "date": params.date, "slot_count": len(slots)},
        )
        return AmenityBookingData(
            amenity_type=profile.amenity_type,
            amenity_name=profile.name,
            date=params.date,
            suggested_slots=tuple(slots),
            location=profile.location,
            max_duration=profile.max_duration,
            rules=profile.rules,
        )
