from cosmo_inventory import create_app

app = create_app()
