"""
Main CLI application using Typer.
"""

from pathlib import Path
from typing import Annotated, List, Optional, Tuple

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..adapters.json_store import JsonSalonStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingValidationError, SalonBookError, SlotUnavailableError
from ..domain.models import WEEKDAY_NAMES, Service, day_of_week, format_price
from ..domain.slot_calculator import SlotCalculator
from ..logging_setup import configure_logging
from ..services.availability import AvailabilityService
from ..services.booking import BookingService

app = typer.Typer(
    name="salonbook",
    help="Turnos disponibles y reservas online para el salón",
    add_completion=False
)

console = Console()

_state = {"verbose": False}

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Mostrar logs de depuración.")] = False,
):
    """
    Consultar disponibilidad y reservar turnos.
    """
    _state["verbose"] = verbose


def _load(config_file: Optional[Path]) -> Tuple[AppConfig, JsonSalonStore]:
    """Load configuration, set up logging and open the salon data file."""
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)
    configure_logging("DEBUG" if _state["verbose"] else config.log_level)
    store = JsonSalonStore(path=config.data_file, timezone=config.timezone)
    return config, store


def _build_availability(
    config: AppConfig,
    store: JsonSalonStore,
    now: Optional[DateTime] = None,
) -> AvailabilityService:
    clock = (lambda: now) if now is not None else None
    return AvailabilityService(
        schedule_store=store,
        booking_store=store,
        block_store=store,
        slot_calculator=SlotCalculator(step_minutes=config.booking.slot_step_minutes),
        timezone=config.timezone,
        clock=clock,
        advance_days=config.booking.advance_days,
    )


def _parse_day(value: Optional[str], tz: str, now: DateTime) -> DateTime:
    if not value:
        return now.in_timezone(tz).start_of("day")
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).start_of("day")
    except ValueError as e:
        raise ValueError(f"Fecha inválida '{value}' (formato YYYY-MM-DD): {e}") from e


def _parse_instant(value: Optional[str], tz: str) -> Optional[DateTime]:
    if not value:
        return None
    try:
        parsed = pendulum.parse(value, tz=tz)
    except ValueError as e:
        raise ValueError(f"Fecha/hora inválida '{value}': {e}") from e
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Fecha/hora inválida '{value}': se espera fecha y hora (YYYY-MM-DDTHH:mm)")
    return parsed.in_timezone(tz)


def _bookable_service(store: JsonSalonStore, service_id: str) -> Service:
    service = store.get_service(service_id)
    if not service.active:
        raise BookingValidationError(f"El servicio '{service.name}' no está disponible")
    return service


def _professional_ids(store: JsonSalonStore, professional: Optional[str]) -> List[str]:
    if professional:
        return [store.get_professional(professional).id]
    return [p.id for p in store.list_professionals()]


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(1)


@app.command()
def slots(
    service_id: Annotated[str, typer.Argument(help="ID del servicio a reservar")],
    day: Annotated[Optional[str], typer.Option("--date", "-d", help="Fecha (YYYY-MM-DD). Por defecto, hoy.")] = None,
    professional: Annotated[Optional[str], typer.Option("--professional", "-p", help="Limitar a un profesional (ID).")] = None,
    now_option: Annotated[Optional[str], typer.Option("--now", help="Instante actual en ISO 8601 (para pruebas).")] = None,
    config_file: ConfigOption = None,
):
    """
    Show the free slots of a day, per professional.

    Examples:

        salonbook slots corte --date 2024-11-25
        salonbook slots corte -p ana --now 2024-11-25T10:45
    """
    try:
        config, store = _load(config_file)
        tz = config.timezone
        now = _parse_instant(now_option, tz)
        availability = _build_availability(config, store, now)
        target_day = _parse_day(day, tz, availability.now())

        service = _bookable_service(store, service_id)
        professional_ids = _professional_ids(store, professional)

        result = availability.find_slots_by_professional(
            professional_ids=professional_ids,
            day=target_day,
            service_duration_minutes=service.duration_minutes,
        )
    except (SalonBookError, FileNotFoundError, ValueError) as e:
        _fail(e)
        return

    weekday = WEEKDAY_NAMES[day_of_week(target_day)]
    console.print(
        f"\n[bold cyan]{service.name}[/bold cyan] - {service.duration_minutes} min | "
        f"{weekday} {target_day.format('DD/MM/YYYY')}\n"
    )

    for professional_id in result.failed:
        console.print(f"[yellow]⚠ No se pudo calcular la disponibilidad de {professional_id}[/yellow]")

    if result.is_empty():
        console.print("[yellow]No hay horarios disponibles para este día.[/yellow]\n")
        return

    for professional_id, professional_slots in result.slots.items():
        name = store.get_professional(professional_id).name
        times = "  ".join(slot.format_time() for slot in professional_slots)
        console.print(f"[bold]{name}[/bold] ({len(professional_slots)})")
        console.print(f"  {times}")
    console.print()


@app.command()
def week(
    service_id: Annotated[str, typer.Argument(help="ID del servicio a reservar")],
    professional: Annotated[Optional[str], typer.Option("--professional", "-p", help="Limitar a un profesional (ID).")] = None,
    now_option: Annotated[Optional[str], typer.Option("--now", help="Instante actual en ISO 8601 (para pruebas).")] = None,
    config_file: ConfigOption = None,
):
    """
    Summarize availability over the online booking window.
    """
    try:
        config, store = _load(config_file)
        availability = _build_availability(config, store, _parse_instant(now_option, config.timezone))
        service = _bookable_service(store, service_id)
        professional_ids = _professional_ids(store, professional)

        days = [
            availability.find_slots_by_professional(
                professional_ids=professional_ids,
                day=booking_day,
                service_duration_minutes=service.duration_minutes,
            )
            for booking_day in availability.booking_dates()
        ]
    except (SalonBookError, FileNotFoundError, ValueError) as e:
        _fail(e)
        return

    table = Table(
        title=f"{service.name} - próximos {len(days)} días",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Día", style="bold yellow")
    table.add_column("Profesional")
    table.add_column("Turnos", justify="right")
    table.add_column("Primer horario", style="dim")

    for result in days:
        label = f"{WEEKDAY_NAMES[day_of_week(result.day)]} {result.day.format('DD/MM')}"
        if result.is_empty():
            table.add_row(label, "-", "0", "-")
            continue
        for professional_id, professional_slots in result.slots.items():
            table.add_row(
                label,
                store.get_professional(professional_id).name,
                str(len(professional_slots)),
                professional_slots[0].format_time(),
            )
            label = ""

    console.print()
    console.print(table)
    console.print()


@app.command()
def book(
    service_id: Annotated[str, typer.Argument(help="ID del servicio")],
    professional_id: Annotated[str, typer.Argument(help="ID del profesional")],
    start: Annotated[str, typer.Argument(help="Inicio del turno (ISO 8601, p. ej. 2024-11-25T10:30)")],
    name: Annotated[str, typer.Option("--name", "-n", help="Nombre del cliente")],
    phone: Annotated[str, typer.Option("--phone", help="Teléfono del cliente")],
    config_file: ConfigOption = None,
):
    """
    Book an appointment the way the online flow does.
    """
    try:
        config, store = _load(config_file)
        booking = BookingService(
            repository=store,
            timezone=config.timezone,
            clock=lambda: pendulum.now(config.timezone),
            min_name_length=config.booking.min_name_length,
            min_phone_length=config.booking.min_phone_length,
        )
        request = BookingService.parse_request(
            {
                "client_name": name,
                "client_phone": phone,
                "service_id": service_id,
                "professional_id": professional_id,
                "start": start,
            }
        )
        appointment = booking.create_booking(request)
    except SlotUnavailableError as e:
        console.print(f"[bold red]✗ {escape(str(e))}[/bold red]")
        console.print("Consultá de nuevo los horarios con [bold]salonbook slots[/bold].")
        raise typer.Exit(1)
    except (SalonBookError, FileNotFoundError, ValueError) as e:
        _fail(e)
        return

    service = store.get_service(appointment.service_id)
    professional = store.get_professional(appointment.professional_id)
    console.print(Panel.fit(
        f"[bold green]✓ Turno reservado[/bold green]\n\n"
        f"[bold]Servicio:[/bold] {service.name}\n"
        f"[bold]Profesional:[/bold] {professional.name}\n"
        f"[bold]Horario:[/bold] {appointment.start.format('DD/MM/YYYY HH:mm')} - {appointment.end.format('HH:mm')}\n"
        f"[bold]Precio:[/bold] {format_price(appointment.price_charged)}\n"
        f"[bold]Estado:[/bold] {appointment.status.label}",
        title=config.salon_name
    ))


@app.command()
def list_professionals(config_file: ConfigOption = None):
    """
    List active professionals.
    """
    try:
        _, store = _load(config_file)
    except (SalonBookError, FileNotFoundError, ValueError) as e:
        _fail(e)
        return

    professionals = store.list_professionals()
    if not professionals:
        console.print("[yellow]No hay profesionales cargados.[/yellow]")
        return

    table = Table(title="Equipo", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Nombre", style="bold yellow")
    table.add_column("Teléfono")

    for professional in professionals:
        table.add_row(professional.id, professional.name, professional.phone or "-")

    console.print()
    console.print(table)
    console.print()


@app.command()
def list_services(config_file: ConfigOption = None):
    """
    List active services with duration and prices.
    """
    try:
        _, store = _load(config_file)
    except (SalonBookError, FileNotFoundError, ValueError) as e:
        _fail(e)
        return

    table = Table(title="Servicios", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Servicio", style="bold yellow")
    table.add_column("Duración", justify="right")
    table.add_column("Efectivo", justify="right")
    table.add_column("MercadoPago", justify="right")

    for service in store.list_services():
        table.add_row(
            service.id,
            service.name,
            f"{service.duration_minutes} min",
            format_price(service.cash_price),
            format_price(service.card_price),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]salonbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
