import json

import click
from flask.cli import with_appcontext


@click.command('seed')
@with_appcontext
def seed_command():
    """Seed default adaptation rules and prompts."""
    from adaptlearn.utils.seed_data import seed_database
    rules, prompts = seed_database()
    click.echo(f'Database seeded! ({rules} rules, {prompts} new prompts)')


@click.command('expire-recommendations')
@with_appcontext
def expire_recommendations_command():
    """Mark pending/viewed recommendations past their validity as expired."""
    from adaptlearn.services.effectiveness import expire_stale_recommendations
    count = expire_stale_recommendations()
    click.echo(f'Expired {count} recommendations')


@click.command('process-adaptations')
@click.argument('user_id', type=int)
@with_appcontext
def process_adaptations_command(user_id):
    """Run the adaptation engine for one learner."""
    from adaptlearn.services.adaptation_engine import AdaptationEngine
    result = AdaptationEngine().process_user_adaptations(user_id)
    if result is None:
        click.echo(f'No analytics data for user {user_id}')
        return
    click.echo(json.dumps(result, indent=2, default=str))


def register_commands(app):
    app.cli.add_command(seed_command)
    app.cli.add_command(expire_recommendations_command)
    app.cli.add_command(process_adaptations_command)
