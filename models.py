import datetime

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()

OPTION_LETTERS = ("A", "B", "C", "D")


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)  # bcrypt hash
    created_at = db.Column(db.DateTime, default=_utcnow)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "email": self.email}


class Question(db.Model):
    __tablename__ = "questions"

    id = db.Column(db.Integer, primary_key=True)
    topic = db.Column(db.String(100), nullable=False, index=True)
    question = db.Column(db.Text, nullable=False)
    option_a = db.Column(db.String(255), nullable=False)
    option_b = db.Column(db.String(255), nullable=False)
    option_c = db.Column(db.String(255), nullable=False)
    option_d = db.Column(db.String(255), nullable=False)
    correct_option = db.Column(db.String(1), nullable=False)
    source = db.Column(db.String(20), nullable=False, default="seed")
    created_at = db.Column(db.DateTime, default=_utcnow)

    usages = db.relationship(
        "QuestionUsage", backref="question", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def options(self):
        return [self.option_a, self.option_b, self.option_c, self.option_d]

    @classmethod
    def from_item(cls, topic, item, source="seed"):
        a, b, c, d = item["options"]
        return cls(
            topic=topic,
            question=item["question"],
            option_a=a,
            option_b=b,
            option_c=c,
            option_d=d,
            correct_option=item["correct_option"],
            source=source,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "question": self.question,
            "options": self.options,
            "correct_option": self.correct_option,
        }


class QuestionUsage(db.Model):
    __tablename__ = "question_usage"
    __table_args__ = (
        db.UniqueConstraint("user_email", "topic", "question_id", name="uq_user_topic_question"),
        db.Index("idx_usage_user_topic", "user_email", "topic"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_email = db.Column(db.String(255), nullable=False)
    topic = db.Column(db.String(100), nullable=False)
    question_id = db.Column(
        db.Integer, db.ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    used_at = db.Column(db.DateTime, default=_utcnow)


class TestResult(db.Model):
    __tablename__ = "test_results"
    __test__ = False  # not a pytest class

    id = db.Column(db.Integer, primary_key=True)
    user_email = db.Column(db.String(255), nullable=False, index=True)
    user_name = db.Column(db.String(255))
    score = db.Column(db.Integer, nullable=False)
    total_questions = db.Column(db.Integer, nullable=False)
    percentage = db.Column(db.Numeric(5, 2))
    topic = db.Column(db.String(100))
    time_spent = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_email": self.user_email,
            "user_name": self.user_name,
            "score": self.score,
            "total_questions": self.total_questions,
            "percentage": float(self.percentage) if self.percentage is not None else None,
            "topic": self.topic,
            "time_spent": self.time_spent,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
