from flask import Blueprint, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the prompt arena server!'})


@main.route('/api/health')
def health():
    return jsonify({'message': 'Backend server is running!'})
