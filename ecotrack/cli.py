"""Custom Flask CLI commands."""

from __future__ import annotations

import logging

import click
from flask import Flask, current_app
from sqlalchemy.exc import SQLAlchemyError

from .models import db
from .models.gamification import Badge, Reward
from .services.account_service import ensure_admin

DEFAULT_BADGES = (
    ("First Step", "Log your first approved activity", "🌱", "milestone", "total_activities", 1),
    ("Eco Enthusiast", "Ten approved activities", "🌿", "milestone", "total_activities", 10),
    ("Green Champion", "Fifty approved activities", "🏆", "milestone", "total_activities", 50),
    ("Tree Hugger", "Plant five trees", "🌳", "community_impact", "tree_plantation_count", 5),
    ("Clean Sweep", "Join five cleanup drives", "🧹", "community_impact", "cleanup_count", 5),
    ("Recycler", "Recycle ten times", "♻️", "community_impact", "recycling_count", 10),
    ("Habit Builder", "Twenty eco-friendly habits", "🚲", "community_impact", "eco_habit_count", 20),
    ("Waste Warrior", "Collect 50 kg of waste", "🗑️", "community_impact", "waste_kg", 50),
    ("On a Roll", "Three-day activity streak", "🔥", "streak", "streak_days", 3),
    ("Unstoppable", "Seven-day activity streak", "⚡", "streak", "streak_days", 7),
)

DEFAULT_REWARDS = (
    ("Seedling", "Your first 100 points", "🌱", 100),
    ("Sapling", "Reach 250 points", "🌿", 250),
    ("Forest Guardian", "Reach 500 points", "🌳", 500),
    ("Earth Hero", "Reach 1000 points", "🌍", 1000),
)


def seed_catalog() -> tuple[int, int]:
    """Insert the default badges and rewards when their tables are empty."""

    badges_added = rewards_added = 0
    if Badge.query.count() == 0:
        for name, description, icon, category, criteria_type, criteria_value in DEFAULT_BADGES:
            db.session.add(
                Badge(
                    name=name,
                    description=description,
                    icon=icon,
                    category=category,
                    criteria_type=criteria_type,
                    criteria_value=criteria_value,
                )
            )
            badges_added += 1
    if Reward.query.count() == 0:
        for name, description, icon, points_required in DEFAULT_REWARDS:
            db.session.add(
                Reward(name=name, description=description, icon=icon, points_required=points_required)
            )
            rewards_added += 1
    db.session.commit()
    return badges_added, rewards_added


def register_cli_commands(app: Flask) -> None:
    """Register application specific CLI commands."""

    @app.cli.command("init-db")
    def init_db_command() -> None:
        """Create all tables that do not exist yet."""
        db.create_all()
        click.echo("Database tables created")

    @app.cli.command("seed-catalog")
    def seed_catalog_command() -> None:
        """Insert the default badge and reward catalogue."""
        try:
            badges_added, rewards_added = seed_catalog()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Catalogue seeded: {badges_added} badges, {rewards_added} rewards")

    @app.cli.command("seed-admin")
    @click.option("--email", default=None, help="Defaults to ADMIN_EMAIL.")
    @click.option("--password", default=None, help="Defaults to ADMIN_PASSWORD.")
    def seed_admin_command(email: str | None, password: str | None) -> None:
        """Create or promote the administrator account."""

        logger = current_app.logger or logging.getLogger(__name__)
        email = email or current_app.config.get("ADMIN_EMAIL")
        password = password or current_app.config.get("ADMIN_PASSWORD")

        try:
            user, created = ensure_admin(email, password)
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("[BOOT] seed-admin failed")
            raise click.ClickException(str(exc)) from exc

        action = "created" if created else "promoted"
        logger.info("[BOOT] admin %s %s", user.email, action)
        click.echo(f"Admin {user.email} {action} (id={user.id})")
