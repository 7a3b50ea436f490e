"""
Flask CLI commands for store setup.

Commands:
- flask init-db: Create the database tables
- flask set-discount-limit: Configure an operator's maximum discount
- flask set-payment-fee: Configure the fee charged for a payment method
"""

import click
from sqlalchemy.exc import SQLAlchemyError

from posapp.database import get_session, create_tables
from posapp.services.discount_limit_service import set_max_discount_percentage
from posapp.services.payment_fee_service import set_fee_percentage


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables that do not exist yet."""
        create_tables()
        click.echo(click.style('✅ Tablas creadas.', fg='green'))

    @app.cli.command('set-discount-limit')
    @click.option('--operator-id', type=int, required=True, help='Operator id')
    @click.option('--percentage', type=str, required=True, help='Maximum discount percentage (0-100)')
    def set_discount_limit(operator_id, percentage):
        """Set the maximum percentage discount an operator may grant."""
        db_session = get_session()
        try:
            limit = set_max_discount_percentage(db_session, operator_id, percentage.replace(',', '.'))
            db_session.commit()
        except ValueError as e:
            db_session.rollback()
            click.echo(click.style(f'❌ {e}', fg='red'))
            raise SystemExit(1)
        except SQLAlchemyError as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Error al guardar el límite: {e}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style(
            f'✅ Operador {operator_id}: descuento máximo {limit.max_discount_percentage}%',
            fg='green'
        ))

    @app.cli.command('set-payment-fee')
    @click.option('--method', required=True, help='CASH, TRANSFER, DEBIT, CREDIT or CREDIT_INSTALLMENTS')
    @click.option('--percentage', type=str, required=True, help='Fee percentage')
    @click.option('--installments', type=int, default=None, help='Installment count (CREDIT_INSTALLMENTS only)')
    def set_payment_fee(method, percentage, installments):
        """Set the fee percentage charged for a payment method."""
        db_session = get_session()
        try:
            fee = set_fee_percentage(db_session, method, percentage.replace(',', '.'), installments)
            db_session.commit()
        except ValueError as e:
            db_session.rollback()
            click.echo(click.style(f'❌ {e}', fg='red'))
            raise SystemExit(1)
        except SQLAlchemyError as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Error al guardar la comisión: {e}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style(
            f'✅ Comisión {fee.method} ({fee.installments or 1}x): {fee.fee_percentage}%',
            fg='green'
        ))
