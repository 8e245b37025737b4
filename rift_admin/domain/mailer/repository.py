"""Newsletter repository - Database operations for newsletter subscribers"""

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import NewsletterSubscriber


class NewsletterRepository:
    """Repository for the Newsletter subscriber table"""

    @staticmethod
    def get_subscribers(db: Session) -> list[NewsletterSubscriber]:
        """All subscribers, oldest first"""
        return db.query(NewsletterSubscriber).order_by(NewsletterSubscriber.id.asc()).all()

    @staticmethod
    def delete_by_email(db: Session, email: str) -> int:
        """Delete every subscription for `email`, matched case-insensitively. Returns rows removed."""
        deleted = (
            db.query(NewsletterSubscriber)
            .filter(func.lower(NewsletterSubscriber.email) == email.strip().lower())
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted
