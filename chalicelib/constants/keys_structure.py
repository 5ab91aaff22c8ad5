users_pk = 'users'
users_sk = '{user_id}'

restaurants_pk = 'restaurants'
restaurants_sk = '{restaurant_id}'

orders_pk = 'orders'
orders_sk = '{order_id}'

# GSI over every record kind: partkey + created_at, used for creation-time ordering
created_at_index = 'created_at-index'
