import typer

from afip_invoicing.application.use_cases.invoicing_facade import InvoicingFacade
from afip_invoicing.bootstrap import build_facade
from afip_invoicing.config import configure_logging, settings
from afip_invoicing.domain.errors import AfipError
from afip_invoicing.domain.value_objects.codes import TaxCondition
from afip_invoicing.domain.value_objects.cuit import CUIT
from afip_invoicing.infrastructure.adapters.ticket.sqlite_store import SQLiteTicketRepository

app = typer.Typer(help="AFIP electronic invoicing CLI")


def _facade() -> InvoicingFacade:
    configure_logging()
    try:
        return build_facade()
    except AfipError as e:
        typer.echo(f"Error de configuración: {e}", err=True)
        raise typer.Exit(code=2)


@app.command()
def login(service: str = typer.Argument("wsfe")) -> None:
    """Obtiene (o reutiliza) el ticket de acceso del servicio."""
    try:
        ticket = _facade().ticket_for(service)
    except AfipError as e:
        typer.echo(f"Login fallido: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Ticket {ticket.service} válido hasta {ticket.expiration_time.isoformat()}")


@app.command()
def status() -> None:
    """Estado de los servidores de WSFE (FEDummy)."""
    st = _facade().server_status()
    typer.echo(f"AppServer={st.app_server} DbServer={st.db_server} AuthServer={st.auth_server}")


@app.command("last-voucher")
def last_voucher(
    sales_point: int = typer.Option(..., "--sales-point", "-p"),
    voucher_type: int = typer.Option(..., "--type", "-t"),
) -> None:
    state = _facade().last_voucher(sales_point, voucher_type)
    typer.echo(f"Último comprobante {state.voucher_type}/{state.sales_point}: {state.last_voucher_number}")


@app.command("sales-points")
def sales_points() -> None:
    points = _facade().sales_points()
    if not points:
        typer.echo("Sin puntos de venta habilitados")
    for p in points:
        flag = "activo" if p.active else "bloqueado/baja"
        typer.echo(f"{p.number:05d} {p.emission_type} ({flag})")


@app.command()
def voucher(
    sales_point: int = typer.Option(..., "--sales-point", "-p"),
    voucher_type: int = typer.Option(..., "--type", "-t"),
    number: int = typer.Option(..., "--number", "-n"),
) -> None:
    """Consulta el CAE de un comprobante emitido."""
    try:
        st = _facade().check_authorization_status(sales_point, voucher_type, number)
    except AfipError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{st.outcome.value} CAE={st.authorization_code} vto={st.authorization_expiry} total={st.total_amount}")


@app.command()
def taxpayer(tax_id: str) -> None:
    """Consulta el padrón A4."""
    try:
        rec = _facade().lookup_taxpayer(tax_id)
    except AfipError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{CUIT(rec.tax_id).formatted} {rec.legal_name} - {rec.tax_condition_description}")
    if rec.address:
        typer.echo(str(rec.address))


@app.command("voucher-letter")
def voucher_letter(
    tax_id: str,
    issuer_condition: str = typer.Option("RESPONSABLE_INSCRIPTO", "--issuer-condition", "-c"),
) -> None:
    """Letra de comprobante a emitir al receptor según su condición en el padrón."""
    try:
        letter = _facade().suggest_voucher_letter(tax_id, TaxCondition.parse(issuer_condition))
    except AfipError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    typer.echo(letter)


@app.command("clear-tickets")
def clear_tickets(service: str = typer.Option(None, "--service", "-s")) -> None:
    """Borra los tickets guardados. No necesita certificado ni clave."""
    repository = SQLiteTicketRepository(db_path=settings.ticket_db_path)
    try:
        repository.clear(service)
    finally:
        repository.close()
    typer.echo(f"Tickets eliminados: {service or 'todos'}")


if __name__ == "__main__":
    app()
