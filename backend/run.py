from .app import create_app
import click
from sqlalchemy import inspect

from .app.errors import StoreUnavailable
from .app.extensions import db
from .app.models import Contact

app = create_app()

EXPECTED_INDEXES = ("idx_contacts_email", "idx_contacts_created_at")

SAMPLE_CONTACTS = [
    {"name": "John Doe", "email": "john@example.com", "message": "This is a test message from Docker"},
    {"name": "Jane Smith", "email": "jane@example.com", "message": "Another test message for the contact form"},
]


def _store():
    return app.extensions["contact_store"]


@app.cli.command("check-db")
def check_db():
    """Verifica la conexión a la base de datos con reintentos."""
    try:
        _store().connect()
    except StoreUnavailable as exc:
        raise click.ClickException(f"Database connection failed: {exc.details}")
    click.echo("Database connection successful")


@app.cli.command("init-db")
def init_db():
    """Crea la tabla contacts y sus índices si no existen."""
    _store().create_schema()
    click.echo("Tabla 'contacts' lista.")


@app.cli.command("verify-indexes")
def verify_indexes():
    """Comprueba que los índices esperados de contacts existen."""
    present = {index["name"] for index in inspect(db.engine).get_indexes(Contact.__tablename__)}
    missing = [name for name in EXPECTED_INDEXES if name not in present]
    for name in EXPECTED_INDEXES:
        click.echo(f"{'OK ' if name in present else 'FALTA'} {name}")
    if missing:
        raise click.ClickException(f"Faltan {len(missing)} índices")


@app.cli.command("seed-contacts")
def seed_contacts():
    """
    Inserta los contactos de ejemplo si todavía no existen.
    """
    created = 0
    for sample in SAMPLE_CONTACTS:
        exists = db.session.execute(
            db.select(Contact.id).where(Contact.email == sample["email"])
        ).first()
        if exists:
            click.echo(f"Contacto '{sample['email']}' ya existe.")
            continue
        db.session.add(Contact(**sample))
        created += 1
        click.echo(f"Contacto '{sample['email']}' creado.")

    if created:
        db.session.commit()
        click.echo(f"{created} contactos de ejemplo añadidos.")
    else:
        click.echo("No se crearon contactos nuevos.")


@app.shell_context_processor
def make_shell_context():
    return {
        "app": app,
        "db": db,
        "Contact": Contact,
        "gateway": app.extensions["contact_gateway"],
    }


def main():
    """Verifica la base de datos, prepara el esquema y sirve la API."""
    with app.app_context():
        try:
            _store().connect()
        except StoreUnavailable:
            app.logger.error("Failed to start server: database unavailable")
            raise SystemExit(1)
        _store().create_schema()

    port = app.config.get("PORT", 3000)
    app.logger.info(f"Server running on port {port}")
    app.logger.info(f"Environment: {app.config.get('APP_ENV')}")
    app.run(host="0.0.0.0", port=port, debug=app.config.get("DEBUG", False))


if __name__ == "__main__":
    main()
