# ed_core/tests/helpers.py

def scoped(hospital_id):
    return {
        "HTTP_X_HOSPITAL_ID": str(hospital_id),
    }
