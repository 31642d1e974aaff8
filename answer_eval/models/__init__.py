# Import every model so Base.metadata knows all tables
from answer_eval.models.user import User  # noqa
from answer_eval.models.question import Question  # noqa
from answer_eval.models.submission import AnswerImage, Evaluation, Submission  # noqa
from answer_eval.models.review_request import ReviewRequest  # noqa
