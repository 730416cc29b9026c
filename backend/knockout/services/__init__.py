import functools

from knockout import db


def transactional(fn):
    """Run ``fn`` as one unit of work on the current session.

    The outermost decorated call commits on success and rolls back on any
    exception; decorated calls made from inside it join that transaction.
    """
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        session = db.session
        if session.info.get('knockout_tx'):
            return fn(*args, **kwargs)
        session.info['knockout_tx'] = True
        try:
            result = fn(*args, **kwargs)
            session.commit()
            return result
        except Exception:
            session.rollback()
            raise
        finally:
            session.info.pop('knockout_tx', None)
    return wrapper
