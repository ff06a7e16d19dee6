import click

from business_portal.errors import PortalError


def register_commands(app):

    @app.cli.command('create-admin')
    @click.option('--name', prompt=True)
    @click.option('--email', prompt=True)
    @click.option('--username', prompt=True)
    @click.password_option()
    @click.option('--pin', default=None, help='Optional 4-6 digit PIN')
    def create_admin(name, email, username, password, pin):
        """Create an ADMIN account."""
        from business_portal.services.users import create_user
        try:
            user = create_user(name, email, username, password, role='ADMIN', pin=pin)
        except PortalError as e:
            raise click.ClickException(e.message)
        click.echo(f'Admin {username} created with id {user.id}')

    @app.cli.command('seed-schedule')
    def seed_schedule():
        """Create the default Monday-Friday work schedule if missing."""
        from business_portal.services.attendance import get_work_schedules
        schedules = get_work_schedules()
        click.echo(f'{len(schedules)} schedule rows present')
