from carrental.config import Settings
from carrental.models.store import Store
from carrental.services.credentials import StoreCredentialVerifier
from carrental.utils.security import generate_hash


def ensure_user(store: Store, username: str, password: str, role: str):
    """
    Ensure a user with `username` exists in the store.
    - If exists: update password hash and role (idempotent).
    - If not:   create a new user.
    """
    u = store.find_user(username)
    if u:
        u["password_hash"] = generate_hash(password)
        u["role"] = role
        return u["user_id"]
    ok, msg, uid = StoreCredentialVerifier(store).register(username, role, password)
    if not ok:
        raise SystemExit(msg)
    return uid


def main():
    settings = Settings()
    if not settings.data_path:
        raise SystemExit("Set CARRENTAL_DATA_PATH to the snapshot file to seed")
    store = Store(settings.data_path)

    # ---- Admin / Hoster / Customer demo accounts ----
    ensure_user(store, "admin", "Admin123", "admin")
    ensure_user(store, "hoster", "Hoster123", "hoster")
    ensure_user(store, "customer", "Customer123", "customer")

    # ---- Demo cars owned by the hoster (create only if none exist) ----
    if not store.cars:
        store.create_car({"name": "Toyota Corolla", "owner_id": "hoster", "price_per_day": 45,
                          "location_tag": "downtown"})
        store.create_car({"name": "Honda Civic", "owner_id": "hoster", "price_per_day": 50,
                          "location_tag": "airport"})
        store.create_car({"name": "Tesla Model 3", "owner_id": "hoster", "price_per_day": 85,
                          "location_tag": "downtown"})
        store.create_car({"name": "Ford Transit", "owner_id": "hoster", "price_per_day": 95,
                          "location_tag": "harbour", "status": "maintenance"})

    store.save()

    print("Seed complete.")
    print("Admin login:    admin / Admin123")
    print("Hoster login:   hoster / Hoster123")
    print("Customer login: customer / Customer123")


if __name__ == "__main__":
    main()
