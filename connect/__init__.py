from connect.connect import close_connection, initialize_connection
