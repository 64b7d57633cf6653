"""Review model for book reviews and ratings.

Reviews are append-only. The reviewer's display name is looked up from the
user at read time and never stored with the review.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from lumilib.models.database import (format_timestamp, load_collection,
                                     next_id, save_collection, transaction)
from lumilib.models.errors import RecordNotFound, UserIneligible, ValidationError

UNKNOWN_USER_NAME = 'Unknown user'


class Review:
    """Represents a book review with rating and comment.

    Attributes:
        id: Unique review identifier.
        user_id: ID of the user who wrote the review.
        book_id: ID of the book being reviewed.
        rating: Rating value (1-5).
        content: Review text.
        date: When the review was created.
        user_name: Reviewer's current name, filled in by the read methods.
    """

    def __init__(self, id: int, user_id: int, book_id: int,
                 rating: int, content: str, date: str,
                 user_name: Optional[str] = None) -> None:
        """Initialize a Review instance."""
        self.id = int(id)
        self.user_id = int(user_id)
        self.book_id = int(book_id)
        self.rating = int(rating)
        self.content = content
        self.date = date
        self.user_name = user_name

    @staticmethod
    def create(user_id: int, book_id: int, rating: Any, content: str,
               now: Optional[datetime] = None) -> 'Review':
        """Append a review.

        Raises:
            UserIneligible: Unknown user.
            RecordNotFound: Unknown book.
            ValidationError: Rating is not an integer between 1 and 5.
        """
        from lumilib.models.book import Book
        from lumilib.models.user import User

        if isinstance(rating, bool) or (isinstance(rating, float) and not rating.is_integer()):
            raise ValidationError('Invalid rating format')
        try:
            rating = int(rating)
        except (ValueError, TypeError):
            raise ValidationError('Invalid rating format')
        if rating < 1 or rating > 5:
            raise ValidationError('Rating must be between 1 and 5')

        with transaction():
            if not User.get_by_id(user_id):
                raise UserIneligible(f'User {user_id} does not exist')
            if not Book.get_by_id(book_id):
                raise RecordNotFound(f'Book {book_id} not found')

            rows = load_collection('reviews')
            review = Review(
                id=next_id(rows),
                user_id=user_id,
                book_id=book_id,
                rating=rating,
                content=(content or '').strip(),
                date=format_timestamp(now or datetime.now())
            )
            rows.append(review.to_record())
            save_collection('reviews', rows)
        return review

    @staticmethod
    def get_by_book(book_id: Optional[int] = None) -> List['Review']:
        """Get reviews (of one book, or all) with reviewer names, newest first."""
        names = {u['id']: u['name'] for u in load_collection('users')}
        rows = [
            r for r in load_collection('reviews')
            if book_id is None or r['book_id'] == book_id
        ]
        rows.sort(key=lambda r: (r['date'], r['id']), reverse=True)
        return [
            Review(**row, user_name=names.get(row['user_id'], UNKNOWN_USER_NAME))
            for row in rows
        ]

    @staticmethod
    def get_rating_stats(book_id: int) -> Dict[str, Any]:
        """Average, count and 1-5 distribution of a book's ratings."""
        reviews = Review.get_by_book(book_id)
        distribution = {i: 0 for i in range(1, 6)}
        for review in reviews:
            distribution[review.rating] += 1
        average = round(sum(r.rating for r in reviews) / len(reviews), 1) if reviews else 0
        return {'average': average, 'count': len(reviews), 'distribution': distribution}

    def to_record(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'book_id': self.book_id,
            'rating': self.rating,
            'content': self.content,
            'date': self.date
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert review to dictionary."""
        data = self.to_record()
        data['user_name'] = self.user_name
        return data
