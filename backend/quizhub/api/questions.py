from flask import Blueprint, current_app, jsonify, request
from quizhub.errors import CollaboratorUnavailable

questions = Blueprint('questions', __name__)

MAX_QUESTION_SET = 50


@questions.route('', methods=['GET'])
def get_question_set():
    """
    Returns a random question set without the correct answers.
    """
    default = current_app.config.get('QUESTION_SET_SIZE', 10)
    limit = request.args.get('limit', default, type=int)
    if limit is None or limit < 1:
        return jsonify({'error': 'limit must be a positive integer'}), 400
    limit = min(limit, MAX_QUESTION_SET)

    oracle = current_app.extensions['quizhub'].oracle
    try:
        question_set = oracle.question_set(limit)
    except CollaboratorUnavailable as exc:
        current_app.logger.warning(f"[questions] store unavailable: {exc.message}")
        return jsonify({'error': 'Question store unavailable'}), 503
    return jsonify(question_set), 200
