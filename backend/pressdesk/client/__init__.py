"""
Console-side core: the synchronized store, order lifecycle engine, signing
bridge and print service. Everything here talks to the gateway over HTTP and
never touches the database directly.
"""
